import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))
RELOAD = os.getenv("RELOAD", "false").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Per-connection outbound queue; a full queue counts as a failed send
OUTBOUND_QUEUE_SIZE = int(os.getenv("OUTBOUND_QUEUE_SIZE", 256))

# Call negotiation types are relayed to the room but never echoed to the sender
SIGNALING_TYPES = frozenset({"call-user", "call-accepted", "offer", "answer", "ice-candidate"})

WELCOME_MESSAGE = "Connected to chat server"
