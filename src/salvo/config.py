"""Central configuration for runtime-tunable parameters.

All tunables can be overridden via environment variables so that the
production server runs with sensible defaults, while the automated
test-suite can shorten timers where it needs to.
"""

from __future__ import annotations

import os
import string

# ===========================================================================
# Network Defaults
# ===========================================================================
# SALVO_HOST: Default host address for the server to bind to.
#   Defaults to "127.0.0.1".
#   Example: export SALVO_HOST=0.0.0.0
DEFAULT_HOST: str = os.getenv("SALVO_HOST", "127.0.0.1")

# SALVO_PORT: Default port for the server to listen on.
#   Defaults to 61337.
#   Example: export SALVO_PORT=5001
DEFAULT_PORT: int = int(os.getenv("SALVO_PORT", "61337"))

# SALVO_SEND_QUEUE: outbound packets buffered per connection. A peer that
#   stops reading long enough to fill it is disconnected.
#   Defaults to 256.
SEND_QUEUE: int = int(os.getenv("SALVO_SEND_QUEUE", "256"))


# ===========================================================================
# Reconnect Grace Period
# ===========================================================================
# SALVO_GRACE_PERIOD: seconds a disconnected participant keeps their seat.
#   When it elapses without a reconnect the room is closed.
#   Defaults to 30 seconds. Example: export SALVO_GRACE_PERIOD=10
GRACE_PERIOD: float = float(os.getenv("SALVO_GRACE_PERIOD", "30"))


# ===========================================================================
# Game Constants
# ===========================================================================
# The board and fleet are fixed by the rules; they are not read from the
# environment.
BOARD_SIZE: int = 10

# Ship lengths, placed in this order.
FLEET: tuple[int, ...] = (5, 4, 3, 3, 2)

# SALVO_PLACEMENT_ATTEMPTS: upper bound on random anchors tried per ship
#   before fleet placement gives up.
#   Defaults to 10000.
PLACEMENT_ATTEMPTS: int = int(os.getenv("SALVO_PLACEMENT_ATTEMPTS", "10000"))

# SALVO_REVEAL_OPPONENT: If "1", restore payloads carry the opponent grid with
#   ships visible. Defaults to "0" (ships hidden until hit).
REVEAL_OPPONENT: bool = os.getenv("SALVO_REVEAL_OPPONENT", "0") == "1"

# SALVO_REQUEST_UPLOAD: If "1", the engine sends the legacy "upload" request to
#   both participants once a room fills. Defaults to "0".
REQUEST_UPLOAD: bool = os.getenv("SALVO_REQUEST_UPLOAD", "0") == "1"


# ===========================================================================
# Room Codes
# ===========================================================================
ROOM_CODE_LENGTH: int = 4
ROOM_CODE_ALPHABET: str = string.ascii_uppercase + string.digits
# Regeneration attempts on collision before the registry reports itself full.
ROOM_CODE_ATTEMPTS: int = 100


# ===========================================================================
# Debugging and Logging
# ===========================================================================
# SALVO_DEBUG: If "1", enables detailed debug logging across modules.
#   Defaults to "0" (disabled).
DEBUG: bool = os.getenv("SALVO_DEBUG", "0") == "1"


# ===========================================================================
# Cryptography Defaults
# ===========================================================================
# SALVO_KEY: AES-GCM key as a hex string, used when the server runs --secure.
# Defaults to "00112233445566778899AABBCCDDEEFF".
DEFAULT_KEY_HEX: str = os.getenv("SALVO_KEY", "00112233445566778899AABBCCDDEEFF")
DEFAULT_KEY: bytes = bytes.fromhex(DEFAULT_KEY_HEX)
