"""Protocol layer: opcode table, JSON framing, reply parsing, and transfers."""

from .commands import Envelope, Opcode, build_command
from .framing import Message, decode_results, encode_command
