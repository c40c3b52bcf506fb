"""
JWT verification.

Tokens are issued by the user management system; this service only reads
them. Every token must carry an expiry.
"""

from typing import Optional, Dict, Any
from jose import JWTError, jwt
from quickbill.app.core.config import settings


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a bearer token.

    Example payload:
        {
            "sub": "jdoe",
            "user_id": 12,
            "role": "Revenue Officer",
            "exp": 1234567890
        }

    Returns:
        Decoded payload if signature and expiry are valid, None otherwise
    """
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True}
        )
    except JWTError:
        return None
