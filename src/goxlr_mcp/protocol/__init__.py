"""Protocol layer: request framing, command IDs, and response parsing."""

from .framing import build_frame, parse_frame, parse_header
from .commands import Command, command_id
