# utils.py
"""
FILE: utils.py
DESCRIPTION:
  Shared helper functions used across the project.
  - clean_mac(): Sanitizes IDs for MQTT topics and unique IDs.
  - get_mac_id(): Short hardware ID (last 3 bytes of the MAC, uppercase hex).
  - get_ip_address(): Best-effort primary IPv4 address of this host.
  - network_link_up(): Cheap check used to gate broker connect attempts.
"""
import re
import socket
import uuid

import config

# Global cache
_MAC_ID = None


def clean_mac(mac):
    """Cleans up MAC/ID string for use in topic/unique IDs."""
    cleaned = re.sub(r'[^A-Za-z0-9]', '', str(mac))
    return cleaned.upper() if cleaned else "UNKNOWN"


def get_mac_id():
    global _MAC_ID
    if _MAC_ID:
        return _MAC_ID

    # 1. PREFERRED: Static ID from config
    if config.MAC_ID:
        _MAC_ID = clean_mac(config.MAC_ID)
        return _MAC_ID

    # 2. FALLBACK: Hardware MAC (uuid.getnode may return a random one)
    node = uuid.getnode()
    _MAC_ID = "%02X%02X%02X" % ((node >> 16) & 0xFF, (node >> 8) & 0xFF, node & 0xFF)
    return _MAC_ID


def get_ip_address():
    """Returns the IPv4 address used for outbound traffic, or '' if unknown."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # UDP connect sends nothing; it only selects the route.
        s.connect(("10.255.255.255", 1))
        return s.getsockname()[0]
    except OSError:
        return ""
    finally:
        s.close()


def network_link_up():
    return get_ip_address() not in ("", "127.0.0.1")
