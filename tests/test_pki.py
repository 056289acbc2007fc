"""
Iyzico PKI serialization and IYZWS authorization header.
"""

import base64
import hashlib

from connectors.pki import build_pki_string, build_auth_headers, generate_random_key


class TestPkiString:
    def test_flat_nested_and_list_values(self):
        request = {
            "locale": "tr",
            "conversationId": "EPZ2610190001ABCD",
            "price": "1.00",
            "buyer": {"id": "7", "name": "Ali"},
            "enabledInstallments": [1, 2, 3],
            "basketItems": [
                {"id": "1", "price": "0.30"},
                {"id": "2", "price": "0.70"},
            ],
        }

        assert build_pki_string(request) == (
            "locale=tr,conversationId=EPZ2610190001ABCD,price=1.00,"
            "buyer.id=7,buyer.name=Ali,"
            "enabledInstallments=[1, 2, 3],"
            "basketItems=[id=1,price=0.30, id=2,price=0.70]"
        )

    def test_none_values_skipped(self):
        assert build_pki_string({"a": "1", "b": None, "c": "3"}) == "a=1,c=3"

    def test_booleans_lowercase(self):
        assert build_pki_string({"enabled": True, "forced": False}) == "enabled=true,forced=false"

    def test_deep_nesting_uses_dotted_prefix(self):
        assert build_pki_string({"a": {"b": {"c": 1}}}) == "a.b.c=1"

    def test_empty_mapping_serialized_as_empty_list(self):
        assert build_pki_string({"x": {}}) == "x=[]"

    def test_key_order_preserved(self):
        assert build_pki_string({"z": 1, "a": 2}) == "z=1,a=2"


class TestAuthHeaders:
    def test_iyzws_signature(self):
        request = {"locale": "tr", "conversationId": "123"}
        headers = build_auth_headers("api-key", "secret", request, random_key="rnd123")

        digest = hashlib.sha1("api-keyrnd123secretlocale=tr,conversationId=123".encode("utf-8")).digest()
        expected = base64.b64encode(digest).decode("ascii")

        assert headers["Authorization"] == f"IYZWS api-key:{expected}"
        assert headers["x-iyzi-rnd"] == "rnd123"
        assert headers["Content-Type"] == "application/json"

    def test_random_key_generated_when_missing(self):
        headers = build_auth_headers("k", "s", {})
        assert len(headers["x-iyzi-rnd"]) == 32
        assert generate_random_key() != generate_random_key()
