import csv
import io

from rest_framework.renderers import BaseRenderer


class CSVRenderer(BaseRenderer):
    """Renders a list of flat dicts as CSV, header taken from the first row."""

    media_type = "text/csv"
    format = "csv"
    charset = "utf-8"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        if data is None:
            return b""
        if isinstance(data, dict):
            data = [data]

        out = io.StringIO()
        header = getattr(renderer_context.get("view"), "csv_header", None) if renderer_context else None
        header = header or (list(data[0].keys()) if data else [])
        writer = csv.DictWriter(out, fieldnames=header, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(data)
        return out.getvalue().encode(self.charset)
