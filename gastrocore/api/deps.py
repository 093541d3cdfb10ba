from fastapi import Header, HTTPException

from gastrocore.services.gatekeeping import AccountGate, ConfiguredAccountGate

_account_gate: AccountGate = ConfiguredAccountGate()


# Identity is established upstream; the caller forwards the user id
def current_user_id(x_user_id: str = Header(None, alias="X-User-Id")) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_account_gate() -> AccountGate:
    return _account_gate
