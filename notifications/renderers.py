from rest_framework.renderers import BaseRenderer

from .services import serialize_event


class EventStreamRenderer(BaseRenderer):
    """Lets ``Accept: text/event-stream`` pass content negotiation; errors go out as an ``error`` event."""

    media_type = "text/event-stream"
    format = "event-stream"
    charset = "utf-8"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        if data is None:
            return b""
        if isinstance(data, bytes):
            return data
        if isinstance(data, str):
            return data.encode(self.charset)
        return serialize_event("error", data).encode(self.charset)
