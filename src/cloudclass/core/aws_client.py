"""Shared boto3 session and per-region client cache.

Every resource manager asks this module for its clients. The region
fan-out calls ``get_client`` from several worker threads at once, so the
session and the cache are guarded by one lock.
"""

import logging
import threading
from typing import Any, Dict, Optional, Tuple

import boto3
from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

logger = logging.getLogger(__name__)

FALLBACK_REGION = "us-east-1"

# STS error codes that mean the configured credentials are unusable
CREDENTIAL_ERROR_CODES = frozenset({
    "InvalidUserID.NotFound",
    "InvalidClientTokenId",
    "ExpiredToken",
})


class AWSClientManager:
    """Hands out boto3 clients keyed by service and region.

    Attributes:
        identity: Caller identity returned by STS, once verified
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        default_region: Optional[str] = None,
        validate: bool = True,
    ) -> None:
        """Create the manager and, unless told otherwise, verify credentials.

        Args:
            profile_name: Named profile from the shared credentials file
            default_region: Region used when the profile defines none
            validate: Call STS before any other request is made

        Raises:
            NoCredentialsError: When credentials are missing or rejected
            ProfileNotFound: When the named profile does not exist
        """
        self._profile_name = profile_name
        self._default_region = default_region
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[Tuple[str, str], Any] = {}
        self._lock = threading.Lock()
        self.identity: Dict[str, str] = {}
        if validate:
            self.verify_credentials()

    @property
    def session(self) -> boto3.Session:
        with self._lock:
            return self._ensure_session()

    def _ensure_session(self) -> boto3.Session:
        if self._session is None:
            if self._profile_name:
                self._session = boto3.Session(profile_name=self._profile_name)
            else:
                self._session = boto3.Session()
        return self._session

    def verify_credentials(self) -> Dict[str, str]:
        """Ask STS who we are.

        Returns:
            The caller identity (``Account``, ``Arn``, ``UserId``)

        Raises:
            NoCredentialsError: When credentials are missing or rejected
            ProfileNotFound: When the named profile does not exist
        """
        try:
            sts = self.session.client("sts", region_name=self.get_current_region())
            response = sts.get_caller_identity()
        except NoCredentialsError:
            raise NoCredentialsError()
        except ProfileNotFound:
            raise ProfileNotFound(profile=self._profile_name)
        except ClientError as e:
            if e.response["Error"]["Code"] in CREDENTIAL_ERROR_CODES:
                raise NoCredentialsError()
            raise

        self.identity = {
            key: response[key] for key in ("Account", "Arn", "UserId") if key in response
        }
        logger.debug("Using AWS identity %s", self.identity.get("Arn", "unknown"))
        return self.identity

    def get_client(self, service_name: str, region_name: str) -> Any:
        """Return the cached client for a service in a region.

        Args:
            service_name: boto3 service name, e.g. ``ec2`` or ``autoscaling``
            region_name: Region the client talks to

        Returns:
            A boto3 client, created on first use
        """
        key = (service_name, region_name)
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._ensure_session().client(service_name, region_name=region_name)
                self._clients[key] = client
            return client

    def get_current_region(self) -> str:
        """Region of the session, then the configured default, then us-east-1."""
        return self.session.region_name or self._default_region or FALLBACK_REGION
