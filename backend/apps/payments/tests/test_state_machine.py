"""
State machine tests.
Legal and illegal transitions must raise appropriate errors.
"""

from django.test import SimpleTestCase

from core.exceptions import AlreadyTerminalError, InvalidStateError
from apps.payments.state_machine import is_terminal_state, validate_transition


class StateMachineTransitionTests(SimpleTestCase):
    """Test validate_transition for PaymentRequest and Funding."""

    def test_legal_request_transitions(self):
        # PENDING -> PENDING (partial approval)
        validate_transition("PaymentRequest", "PENDING", "PENDING")
        validate_transition("PaymentRequest", "PENDING", "APPROVED")
        validate_transition("PaymentRequest", "PENDING", "REJECTED")

    def test_legal_funding_transitions(self):
        validate_transition("Funding", "NOT_STARTED", "IN_FLIGHT")
        validate_transition("Funding", "IN_FLIGHT", "SUCCEEDED")
        validate_transition("Funding", "IN_FLIGHT", "FAILED")

    def test_approved_is_terminal(self):
        with self.assertRaises(AlreadyTerminalError) as ctx:
            validate_transition("PaymentRequest", "APPROVED", "REJECTED")
        self.assertEqual(ctx.exception.code, "ALREADY_TERMINAL")

    def test_rejected_is_terminal(self):
        with self.assertRaises(AlreadyTerminalError):
            validate_transition("PaymentRequest", "REJECTED", "APPROVED")

    def test_funding_cannot_start_twice(self):
        with self.assertRaises(InvalidStateError) as ctx:
            validate_transition("Funding", "IN_FLIGHT", "IN_FLIGHT")
        self.assertIn("Invalid transition", str(ctx.exception))

    def test_settled_funding_is_final(self):
        with self.assertRaises(InvalidStateError) as ctx:
            validate_transition("Funding", "FAILED", "IN_FLIGHT")
        self.assertIn("terminal", str(ctx.exception).lower())

    def test_unknown_status(self):
        with self.assertRaises(InvalidStateError):
            validate_transition("PaymentRequest", "DRAFT", "APPROVED")

    def test_unknown_entity_type(self):
        with self.assertRaises(ValueError):
            validate_transition("Invoice", "PENDING", "APPROVED")

    def test_is_terminal_state(self):
        self.assertFalse(is_terminal_state("PaymentRequest", "PENDING"))
        self.assertTrue(is_terminal_state("PaymentRequest", "APPROVED"))
        self.assertTrue(is_terminal_state("PaymentRequest", "REJECTED"))
        self.assertTrue(is_terminal_state("Funding", "SUCCEEDED"))
        self.assertFalse(is_terminal_state("Unknown", "APPROVED"))
