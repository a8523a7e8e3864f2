"""Remote correlation key of a payment.

``remote_id`` is the only handle that ties a later gateway message back to a
payment:

    authorized:  RRN|INT_REF
    captured:    RRN|NEW_INT_REF|OLD_INT_REF

The bank re-issues INT_REF on completion, and follow-up reversals must quote
the newest one, which is why it is kept in the second position.
"""

SEPARATOR = "|"


def compose_remote_id(rrn: str, int_ref: str) -> str:
    return f"{rrn}{SEPARATOR}{int_ref}"


def captured_remote_id(remote_id: str, new_int_ref: str) -> str:
    rrn, old_int_ref = split_remote_id(remote_id)
    return f"{rrn}{SEPARATOR}{new_int_ref}{SEPARATOR}{old_int_ref}"


def split_remote_id(remote_id: str) -> tuple[str, str]:
    """Return the RRN and the current INT_REF encoded in ``remote_id``."""
    parts = (remote_id or "").split(SEPARATOR)
    if len(parts) < 2 or not parts[0]:
        raise ValueError(f"Malformed remote id: {remote_id!r}")
    return parts[0], parts[1]


def rrn_prefix(rrn: str) -> str:
    """Prefix matching every remote id of the authorization with this RRN."""
    return f"{rrn}{SEPARATOR}"
