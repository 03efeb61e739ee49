from typing import Dict

API = "/api/v1"


def auth(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
