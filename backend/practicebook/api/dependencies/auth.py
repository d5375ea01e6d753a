# backend/practicebook/api/dependencies/auth.py
"""
Acting practitioner resolution.

Authentication happens upstream (gateway/session layer); requests reach this
service with the practitioner's id in ``X-Practitioner-Id``. Ownership of
every booking and series is checked against it in the service layer.
"""

import re
from typing import Optional

from fastapi import Header

from ...core.exceptions import UnauthorizedException

_OWNER_ID_PATTERN = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def get_current_owner_id(
    x_practitioner_id: Optional[str] = Header(None, alias="X-Practitioner-Id"),
) -> str:
    owner_id = (x_practitioner_id or "").strip().upper()
    if not owner_id:
        raise UnauthorizedException(
            "Missing practitioner identity", code="MISSING_PRACTITIONER"
        ).to_http_exception()
    if not _OWNER_ID_PATTERN.fullmatch(owner_id):
        raise UnauthorizedException(
            "Malformed practitioner identity", code="INVALID_PRACTITIONER"
        ).to_http_exception()
    return owner_id
