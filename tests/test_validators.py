"""
Tests for input validation utilities
"""
import pytest
from validators import (
    ValidationError,
    NotFoundError,
    PermissionDenied,
    require_fields,
    validate_email,
    validate_password,
    is_date_key
)


@pytest.mark.unit
class TestErrors:
    """Tests for the domain error hierarchy"""

    def test_validation_error_defaults_to_400(self):
        """Test that ValidationError carries message, field and status"""
        err = ValidationError("Email required", field='email')
        assert err.message == "Email required"
        assert err.field == 'email'
        assert err.status == 400

    def test_not_found_is_404(self):
        """Test that NotFoundError maps to 404"""
        assert NotFoundError("Car not found").status == 404

    def test_permission_denied_is_403(self):
        """Test that PermissionDenied maps to 403 with a default message"""
        err = PermissionDenied()
        assert err.status == 403
        assert err.message == 'Forbidden'


@pytest.mark.unit
class TestRequiredFields:
    """Tests for required fields validation"""

    def test_require_fields_raises_first_message(self):
        """Test that the first missing field's message is raised"""
        with pytest.raises(ValidationError) as exc:
            require_fields({'customer_name': 'Ali', 'mobile': '  '}, {
                'customer_name': 'Customer name required',
                'mobile': 'Mobile required',
                'car_id': 'Car selection required',
            })
        assert exc.value.message == 'Mobile required'
        assert exc.value.field == 'mobile'


@pytest.mark.unit
class TestEmailAndPassword:
    """Tests for email and password validation"""

    def test_valid_email(self):
        """Test valid email passes"""
        assert validate_email('staff@jrvservices.co') == (True, None)

    def test_invalid_email(self):
        """Test invalid emails fail"""
        assert validate_email('invalidemail.com')[0] is False
        assert validate_email('')[0] is False

    def test_password_too_short(self):
        """Test that passwords under 6 characters raise with the given message"""
        with pytest.raises(ValidationError) as exc:
            validate_password('12345', "Password must be 6+ chars")
        assert exc.value.message == "Password must be 6+ chars"

    def test_password_ok(self):
        """Test that a 6 character password passes"""
        assert validate_password('123456', 'x') == '123456'


@pytest.mark.unit
class TestDateKeys:
    """Tests for date keys"""

    def test_is_date_key(self):
        """Test YYYY-MM-DD detection"""
        assert is_date_key('2026-01-13') is True
        assert is_date_key('2026-1-13') is False
        assert is_date_key(None) is False
