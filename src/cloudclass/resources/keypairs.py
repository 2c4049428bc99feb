"""EC2 key pair lookup."""

from typing import List

from botocore.exceptions import ClientError

from cloudclass.core.errors import AwsApiError, ResourceNotFoundError, aws_error_message
from cloudclass.resources.base import RegionalResourceManager
from cloudclass.resources.models import KeyPair


class KeyPairManager(RegionalResourceManager):
    """Lists key pairs and finds them by name."""

    label = "Key Pairs"

    def describe_region(self, region: str) -> List[KeyPair]:
        ec2 = self.client("ec2", region)
        response = ec2.describe_key_pairs()
        return [
            KeyPair(
                key_name=pair.get("KeyName", ""),
                fingerprint=pair.get("KeyFingerprint", ""),
                region=region,
            )
            for pair in response.get("KeyPairs", [])
        ]

    def get_by_name(self, region: str, name: str) -> KeyPair:
        """Key pair called name in region.

        Raises:
            ResourceNotFoundError: When the key pair does not exist
        """
        ec2 = self.client("ec2", region)
        try:
            response = ec2.describe_key_pairs(KeyNames=[name])
        except ClientError as e:
            if e.response["Error"]["Code"] == "InvalidKeyPair.NotFound":
                raise ResourceNotFoundError(
                    f"No KeyPair found with name [{name}] in [{region}]!"
                )
            raise AwsApiError(aws_error_message(e))

        pairs = response.get("KeyPairs", [])
        if not pairs:
            raise ResourceNotFoundError(
                f"No KeyPair found with name [{name}] in [{region}]!"
            )
        return KeyPair(
            key_name=pairs[0].get("KeyName", ""),
            fingerprint=pairs[0].get("KeyFingerprint", ""),
            region=region,
        )
