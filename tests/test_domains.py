"""
Custom domains: DNS TXT verification and routes.
"""

from types import SimpleNamespace
from unittest.mock import patch

import dns.name
import dns.resolver
import pytest

from jury.utils.dns_verify import DnsLookupError, check_domain_verification, lookup_txt_records, verification_host


def _txt(*values):
    return [SimpleNamespace(strings=[v.encode() for v in value]) for value in values]


class TestDnsVerify:

    def test_verification_host(self):
        assert verification_host("polls.example.com") == "_thejury-verify.polls.example.com"

    def test_multi_string_records_yield_joined_value_and_chunks(self):
        with patch("dns.resolver.resolve", return_value=_txt(["abc", "def"], ["other"])) as resolve:
            assert lookup_txt_records("_thejury-verify.example.com") == ["abcdef", "abc", "def", "other"]
        resolve.assert_called_once_with("_thejury-verify.example.com", "TXT")

    def test_nxdomain_raises_lookup_error(self):
        with patch("dns.resolver.resolve", side_effect=dns.resolver.NXDOMAIN()):
            with pytest.raises(DnsLookupError):
                lookup_txt_records("missing.example.com")

    def test_match(self):
        with patch("dns.resolver.resolve", return_value=_txt(["unrelated"], [" token-123 "])):
            result = check_domain_verification("example.com", "token-123")
        assert result.verified is True

    def test_mismatch_tells_user_what_to_add(self):
        with patch("dns.resolver.resolve", return_value=_txt(["wrong"])):
            result = check_domain_verification("example.com", "token-123")
        assert result.verified is False
        assert "_thejury-verify.example.com" in result.message
        assert "token-123" in result.message

    @pytest.mark.parametrize("error", [
        dns.name.NameTooLong(),
        dns.resolver.YXDOMAIN(),
        dns.resolver.NoResolverConfiguration(),
    ])
    def test_any_resolver_error_is_a_lookup_error(self, error):
        with patch("dns.resolver.resolve", side_effect=error):
            with pytest.raises(DnsLookupError):
                lookup_txt_records("_thejury-verify.example.com")

    def test_token_in_one_chunk_matches(self):
        with patch("dns.resolver.resolve", return_value=_txt(["token-123", "v=spf1"])):
            assert check_domain_verification("example.com", "token-123").verified is True

    def test_lookup_failure(self):
        with patch("dns.resolver.resolve", side_effect=dns.resolver.NoAnswer()):
            result = check_domain_verification("example.com", "token-123")
        assert result.verified is False
        assert result.message.startswith("Could not resolve DNS")


class TestDomainRoutes:

    def test_requires_team_tier(self, client, make_user):
        _, headers = make_user("pro")
        assert client.post("/api/domains", json={"domain": "polls.example.com"}, headers=headers).status_code == 403

    def test_add_normalizes_and_returns_instructions(self, client, make_user):
        _, headers = make_user("team")
        response = client.post("/api/domains", json={"domain": " Polls.Example.COM. "}, headers=headers)
        assert response.status_code == 201
        body = response.json()
        assert body["domain"] == "polls.example.com"
        assert body["verified"] is False
        assert body["txt_host"] == "_thejury-verify.polls.example.com"
        assert body["txt_value"] == body["verification_token"]

    @pytest.mark.parametrize("domain,detail", [
        ("https://polls.example.com", "Enter a hostname without the scheme (e.g. polls.example.com)"),
        ("not a domain", "Invalid domain name"),
    ])
    def test_invalid_domains(self, client, make_user, domain, detail):
        _, headers = make_user("team")
        response = client.post("/api/domains", json={"domain": domain}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == detail

    def test_duplicate_domain(self, client, make_user):
        _, headers = make_user("team")
        _, other_headers = make_user("team")
        assert client.post("/api/domains", json={"domain": "polls.example.com"}, headers=headers).status_code == 201
        response = client.post("/api/domains", json={"domain": "polls.example.com"}, headers=other_headers)
        assert response.status_code == 409

    def test_verify_flow(self, client, make_user, fake_db):
        _, headers = make_user("team")
        domain = client.post("/api/domains", json={"domain": "polls.example.com"}, headers=headers).json()

        with patch("dns.resolver.resolve", return_value=_txt(["nope"])):
            first = client.post("/api/domains/verify", json={"domainId": domain["id"]}, headers=headers).json()
        assert first["verified"] is False

        with patch("dns.resolver.resolve", return_value=_txt([domain["verification_token"]])):
            second = client.post("/api/domains/verify", json={"domain_id": domain["id"]}, headers=headers).json()
        assert second == {"verified": True, "message": "Domain verified successfully"}
        assert fake_db.rows("custom_domains")[0]["verified_at"] is not None

        third = client.post("/api/domains/verify", json={"domain_id": domain["id"]}, headers=headers).json()
        assert third["message"] == "Domain is already verified"

    def test_verify_unknown_domain(self, client, make_user):
        _, headers = make_user("team")
        assert client.post("/api/domains/verify", json={"domain_id": "missing"}, headers=headers).status_code == 404

    def test_delete(self, client, make_user):
        _, headers = make_user("team")
        domain = client.post("/api/domains", json={"domain": "polls.example.com"}, headers=headers).json()
        assert client.delete(f"/api/domains/{domain['id']}", headers=headers).json() == {"success": True}
        assert client.get("/api/domains", headers=headers).json()["domains"] == []

    def test_verify_longest_domain_reports_unresolvable(self, client, make_user):
        _, headers = make_user("team")
        name = "a" * 63 + "." + "b" * 63 + "." + "c" * 63 + "." + "d" * 57 + ".com"
        assert len(name) == 253
        added = client.post("/api/domains", json={"domain": name}, headers=headers)
        assert added.status_code == 201

        with patch("dns.resolver.resolve", side_effect=dns.name.NameTooLong()):
            response = client.post("/api/domains/verify", json={"domain_id": added.json()["id"]}, headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["verified"] is False
        assert body["message"].startswith("Could not resolve DNS for _thejury-verify.")
