"""Unit tests for the confirmation manager."""

from unittest.mock import patch

from cloudclass.core.safety import ConfirmationRequest, SafetyManager


class TestSafetyManager:
    """Test cases for SafetyManager class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.request = ConfirmationRequest(
            operation="delete",
            question="Are you sure you want to delete these Images?",
            resource_count=3,
        )

    @patch("builtins.input", return_value="y")
    def test_confirmed(self, mock_input):
        """Test a yes answer confirms."""
        manager = SafetyManager()

        assert manager.request_confirmation(self.request) is True
        assert manager.get_audit_log()[-1]["reason"] == "User confirmed"
        assert manager.get_audit_log()[-1]["resource_count"] == 3

    @patch("builtins.input", return_value="no")
    def test_declined(self, mock_input):
        """Test anything but yes declines."""
        manager = SafetyManager()

        assert manager.request_confirmation(self.request) is False
        assert manager.get_audit_log()[-1]["confirmed"] is False

    @patch("builtins.input", side_effect=EOFError)
    def test_end_of_input_declines(self, mock_input):
        """Test closed stdin counts as no."""
        manager = SafetyManager()

        assert manager.request_confirmation(self.request) is False

    @patch("builtins.input")
    def test_disabled_confirmations(self, mock_input):
        """Test --yes auto-confirms without prompting."""
        manager = SafetyManager(enable_confirmations=False)

        assert manager.request_confirmation(self.request) is True
        mock_input.assert_not_called()
        assert manager.get_audit_log()[-1]["reason"] == "Auto-confirmed"

    @patch("builtins.input")
    def test_forced_request(self, mock_input):
        """Test a forced request skips the prompt."""
        manager = SafetyManager()

        assert manager.request_confirmation(self.request, force=True) is True
        mock_input.assert_not_called()

    def test_audit_log_is_a_copy(self):
        """Test the audit log cannot be changed from outside."""
        manager = SafetyManager(enable_confirmations=False)
        manager.request_confirmation(self.request)

        log = manager.get_audit_log()
        log.clear()

        assert len(manager.get_audit_log()) == 1
        assert SafetyManager().get_audit_log() == []
