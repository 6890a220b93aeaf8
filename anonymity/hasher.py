"""
Identity hasher - one-way pseudonymization of anonymous visitor ids
"""
import hashlib

from anonymity.salt import DailySaltProvisioner


def salt_anonymous_id(anonymous_id: str, salt: str) -> str:
    """
    Derive the pseudonymous identifier for an anonymous id.

    SHA256(anonymous_id + salt), no separator, lowercase hex.

    Args:
        anonymous_id: Raw client-generated identifier
        salt: Daily salt

    Returns:
        64-character hex digest

    Raises:
        TypeError: If either argument is not a string
    """
    if not isinstance(anonymous_id, str) or not isinstance(salt, str):
        raise TypeError("anonymous_id and salt must both be str")
    return hashlib.sha256(f"{anonymous_id}{salt}".encode("utf-8")).hexdigest()


class AnonymousIdentity:
    """Pseudonymize anonymous ids with today's salt"""

    def __init__(self, provisioner: DailySaltProvisioner):
        self.provisioner = provisioner

    async def pseudonymize(self, anonymous_id: str) -> str:
        salt = await self.provisioner.get_daily_salt()
        return salt_anonymous_id(anonymous_id, salt)
