"""Unit tests for AWS Client Manager."""

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

from cloudclass.core.aws_client import AWSClientManager


def _session_with_sts(mock_session_class, region_name=None):
    mock_session = Mock()
    mock_session.region_name = region_name
    mock_sts_client = Mock()
    mock_sts_client.get_caller_identity.return_value = {
        "Account": "123456789012"
    }
    mock_session.client.return_value = mock_sts_client
    mock_session_class.return_value = mock_session
    return mock_session, mock_sts_client


class TestAWSClientManager:
    """Test cases for AWSClientManager class."""

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_success(self, mock_session_class):
        """Test successful initialization."""
        _, mock_sts_client = _session_with_sts(mock_session_class)

        manager = AWSClientManager()

        assert manager._profile_name is None
        mock_sts_client.get_caller_identity.assert_called_once()

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_with_profile(self, mock_session_class):
        """Test initialization with profile."""
        _session_with_sts(mock_session_class)

        manager = AWSClientManager(profile_name="test-profile")

        assert manager._profile_name == "test-profile"
        mock_session_class.assert_called_with(profile_name="test-profile")

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_without_validation(self, mock_session_class):
        """Test validation can be skipped."""
        _, mock_sts_client = _session_with_sts(mock_session_class)

        AWSClientManager(validate=False)

        mock_sts_client.get_caller_identity.assert_not_called()

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_no_credentials(self, mock_session_class):
        """Test initialization with no credentials."""
        _, mock_sts_client = _session_with_sts(mock_session_class)
        mock_sts_client.get_caller_identity.side_effect = NoCredentialsError()

        with pytest.raises(NoCredentialsError):
            AWSClientManager()

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_expired_token(self, mock_session_class):
        """Test expired tokens are reported as missing credentials."""
        _, mock_sts_client = _session_with_sts(mock_session_class)
        mock_sts_client.get_caller_identity.side_effect = ClientError(
            {"Error": {"Code": "ExpiredToken", "Message": "expired"}},
            "GetCallerIdentity",
        )

        with pytest.raises(NoCredentialsError):
            AWSClientManager()

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_other_client_error(self, mock_session_class):
        """Test unrelated STS errors propagate unchanged."""
        _, mock_sts_client = _session_with_sts(mock_session_class)
        mock_sts_client.get_caller_identity.side_effect = ClientError(
            {"Error": {"Code": "Throttling", "Message": "slow down"}},
            "GetCallerIdentity",
        )

        with pytest.raises(ClientError):
            AWSClientManager()

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_init_profile_not_found(self, mock_session_class):
        """Test initialization with invalid profile."""
        mock_session_class.side_effect = ProfileNotFound(profile="invalid")

        with pytest.raises(ProfileNotFound):
            AWSClientManager(profile_name="invalid")

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_get_client_caching(self, mock_session_class):
        """Test client caching per service and region."""
        mock_session = Mock()
        mock_session.region_name = "us-east-1"
        mock_sts_client = Mock()
        mock_sts_client.get_caller_identity.return_value = {
            "Account": "123456789012"
        }
        clients = {}

        def client_side_effect(service_name, region_name=None):
            if service_name == "sts":
                return mock_sts_client
            return clients.setdefault((service_name, region_name), Mock())

        mock_session.client.side_effect = client_side_effect
        mock_session_class.return_value = mock_session

        manager = AWSClientManager()

        client1 = manager.get_client("ec2", "us-east-1")
        client2 = manager.get_client("ec2", "us-east-1")
        client3 = manager.get_client("ec2", "eu-west-1")

        assert client1 is client2
        assert client1 is clients[("ec2", "us-east-1")]
        assert client3 is not client1

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_get_current_region(self, mock_session_class):
        """Test getting current region."""
        _session_with_sts(mock_session_class, region_name="us-west-2")

        manager = AWSClientManager()

        assert manager.get_current_region() == "us-west-2"

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_get_current_region_configured_default(self, mock_session_class):
        """Test the configured default region is used when the session has none."""
        _session_with_sts(mock_session_class)

        manager = AWSClientManager(default_region="eu-west-1")

        assert manager.get_current_region() == "eu-west-1"

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_get_current_region_default(self, mock_session_class):
        """Test getting current region with default fallback."""
        _session_with_sts(mock_session_class)

        manager = AWSClientManager()

        assert manager.get_current_region() == "us-east-1"


    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_identity_recorded(self, mock_session_class):
        """Test the verified caller identity is kept."""
        _, mock_sts_client = _session_with_sts(mock_session_class)
        mock_sts_client.get_caller_identity.return_value = {
            "Account": "123456789012",
            "Arn": "arn:aws:iam::123456789012:user/ops",
            "UserId": "AIDEXAMPLE",
            "ResponseMetadata": {},
        }

        manager = AWSClientManager()

        assert manager.identity == {
            "Account": "123456789012",
            "Arn": "arn:aws:iam::123456789012:user/ops",
            "UserId": "AIDEXAMPLE",
        }

    @patch("cloudclass.core.aws_client.boto3.Session")
    def test_session_created_once(self, mock_session_class):
        """Test every client comes from one session."""
        _session_with_sts(mock_session_class, region_name="us-east-1")

        manager = AWSClientManager()
        manager.get_client("ec2", "us-east-1")
        manager.get_client("autoscaling", "us-west-2")

        mock_session_class.assert_called_once_with()
        assert set(manager._clients) == {("ec2", "us-east-1"), ("autoscaling", "us-west-2")}
