"""
Iyzico PKI string serializer + IYZWS authorization header

PKI formatı:
- dict değerler nokta ile önek alır:   buyer.id=1,buyer.name=Ali
- listeler köşeli parantez:            enabledInstallments=[1, 2, 3]
- liste içindeki dict'ler öneksiz:     basketItems=[id=1,price=10.00, id=2,price=5.00]
- None değerler atlanır, anahtar sırası korunur
- İç içe dict bloğu da virgülle ayrılır, bool değerler true/false yazılır (sabit format)
"""
import base64
import hashlib
import uuid
from typing import Any, Dict, Mapping, Optional


def _is_mapping(value: Any) -> bool:
    # Boş dict liste gibi davranır: key=[]
    return isinstance(value, Mapping) and len(value) > 0


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple)) or (isinstance(value, Mapping) and len(value) == 0)


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_pki_string(data: Mapping[str, Any], prefix: str = "") -> str:
    """
    Request dict'ini PKI string'e çevirir

    Args:
        data: Iyzico request body (insertion order korunur)
        prefix: İç içe dict'ler için nokta önek

    Returns:
        PKI string (sondaki virgül olmadan)
    """
    parts = []

    for key, value in data.items():
        if value is None:
            continue

        if _is_mapping(value):
            nested = build_pki_string(value, f"{prefix}{key}.")
            if nested:
                parts.append(nested)
        elif _is_sequence(value):
            items = []
            for item in value:
                if isinstance(item, Mapping):
                    items.append(build_pki_string(item))
                elif item is not None:
                    items.append(_scalar(item))
            parts.append(f"{prefix}{key}=[{', '.join(items)}]")
        else:
            parts.append(f"{prefix}{key}={_scalar(value)}")

    return ",".join(parts)


def generate_random_key() -> str:
    """x-iyzi-rnd değeri"""
    return uuid.uuid4().hex


def build_auth_headers(api_key: str, secret_key: str, request: Mapping[str, Any],
                       random_key: Optional[str] = None) -> Dict[str, str]:
    """
    IYZWS authorization header'ları

    Authorization: IYZWS {api_key}:{base64(sha1(api_key + rnd + secret + pki))}
    """
    rnd = random_key or generate_random_key()
    pki = build_pki_string(request)
    digest = hashlib.sha1(f"{api_key}{rnd}{secret_key}{pki}".encode("utf-8")).digest()
    signature = base64.b64encode(digest).decode("ascii")

    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "Authorization": f"IYZWS {api_key}:{signature}",
        "x-iyzi-rnd": rnd,
    }
