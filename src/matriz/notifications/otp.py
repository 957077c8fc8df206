"""Login OTP delivery helpers for the auth SMS hook."""

from typing import Any

OTP_MESSAGE_TEMPLATE = "Seu código de login é: {otp}"


def normalize_phone(raw: str) -> str:
    """Normalize a phone number to E.164-like ``+<digits>`` form.

    Spaces and dashes are removed, a leading ``00`` becomes ``+`` and a
    ``+`` is prefixed when missing (the number is assumed to already carry
    its country code).
    """
    phone = raw.strip().replace(" ", "").replace("-", "")
    if phone.startswith("00"):
        phone = "+" + phone[2:]
    if not phone.startswith("+"):
        phone = "+" + phone
    return phone


def _first_defined(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def extract_phone_and_otp(payload: Any) -> tuple[str | None, str | None]:
    """Read phone and OTP from a hook payload.

    Accepts the auth hook shape ``{"user": {"phone"}, "sms": {"otp"}}`` and a
    flat ``{"phone", "otp"}`` shape for manual calls.
    """
    if not isinstance(payload, dict):
        return None, None
    user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
    sms = payload.get("sms") if isinstance(payload.get("sms"), dict) else {}

    phone = _first_defined(payload.get("phone"), user.get("phone"))
    otp = _first_defined(sms.get("otp"), payload.get("otp"))
    return (
        str(phone) if phone not in (None, "") else None,
        str(otp) if otp not in (None, "") else None,
    )


def build_otp_message(otp: str) -> str:
    return OTP_MESSAGE_TEMPLATE.format(otp=otp)
