"""
Embed snippets, embed payloads and theme resolution.
"""

import pytest

from jury import config
from jury.utils.embeds import (
    DEFAULT_EMBED_THEME,
    EmbedSettingsError,
    build_iframe,
    embed_url,
    resolve_theme,
    show_branding,
    validate_dimension,
    validate_embed_settings,
)


class TestEmbedHelpers:

    @pytest.mark.parametrize("value", ["100%", "400", "400px"])
    def test_valid_dimensions(self, value):
        assert validate_dimension(value, "width") == value

    @pytest.mark.parametrize("value", ["", "abc", "12em", "100%;", "12345"])
    def test_invalid_dimensions(self, value):
        with pytest.raises(EmbedSettingsError):
            validate_dimension(value, "height")

    def test_settings_validation(self):
        assert validate_embed_settings({"primary_color": "#ABCDEF", "border_radius": 8})["border_radius"] == 8
        with pytest.raises(EmbedSettingsError):
            validate_embed_settings({"border_radius": 99})
        with pytest.raises(EmbedSettingsError):
            validate_embed_settings({"logo_url": "http://insecure.example.com/logo.png"})

    def test_theme_follows_current_tier(self):
        settings = {"primary_color": "#ff0000", "logo_url": "https://cdn.example.com/logo.png"}

        assert resolve_theme("free", settings) == DEFAULT_EMBED_THEME
        pro = resolve_theme("pro", settings)
        assert pro["primary_color"] == "#ff0000"
        assert "logo_url" not in pro
        assert resolve_theme("team", settings)["logo_url"] == "https://cdn.example.com/logo.png"

    def test_branding(self):
        assert show_branding("free") is True
        assert show_branding("pro") is False

    def test_iframe_escapes(self):
        markup = build_iframe('https://x.test/embed/a"b', "100%", "400")
        assert 'src="https://x.test/embed/a&quot;b"' in markup
        assert 'sandbox="allow-scripts allow-same-origin allow-forms"' in markup

    def test_embed_url(self):
        assert embed_url("AbC12345", "light") == f"{config.APP_URL}/embed/AbC12345?theme=light"


class TestEmbedCodeRoute:

    def test_free_snippet_is_branded(self, client, make_user, create_poll):
        _, headers = make_user("free")
        poll = create_poll(headers)

        body = client.get(f"/api/polls/{poll['id']}/embed-code", headers=headers).json()
        assert body["embed_url"] == f"{config.APP_URL}/embed/{poll['code']}?theme=dark"
        assert body["branding"] is True
        assert 'width="100%"' in body["iframe"]
        assert 'height="400"' in body["iframe"]

    def test_custom_theme_gated(self, client, make_user, create_poll):
        _, free_headers = make_user("free")
        poll = create_poll(free_headers)
        assert client.get(f"/api/polls/{poll['id']}/embed-code?theme=custom", headers=free_headers).status_code == 403

        _, pro_headers = make_user("pro")
        pro_poll = create_poll(pro_headers)
        response = client.get(f"/api/polls/{pro_poll['id']}/embed-code?theme=custom", headers=pro_headers)
        assert response.status_code == 200
        assert response.json()["branding"] is False

    def test_bad_parameters(self, client, make_user, create_poll):
        _, headers = make_user("free")
        poll = create_poll(headers)
        assert client.get(f"/api/polls/{poll['id']}/embed-code?theme=neon", headers=headers).status_code == 400
        assert client.get(f"/api/polls/{poll['id']}/embed-code?width=wide", headers=headers).status_code == 400


class TestEmbedPayload:

    def test_public_payload(self, client, make_user, create_poll):
        _, headers = make_user("pro")
        poll = create_poll(headers)
        client.patch(f"/api/polls/{poll['id']}", json={"embed_settings": {"primary_color": "#123456"}}, headers=headers)

        body = client.get(f"/api/embed/{poll['code']}").json()
        assert body["poll"]["id"] == poll["id"]
        assert "user_id" not in body["poll"]
        assert "embed_settings" not in body["poll"]
        assert "password_hash" not in body["poll"]
        assert body["theme"]["primary_color"] == "#123456"
        assert body["branding"] is False
        assert body["results"]["total_voters"] == 0

    def test_hidden_results_are_omitted(self, client, make_user, create_poll):
        _, headers = make_user("free")
        poll = create_poll(headers, show_results_to_voters=False)
        body = client.get(f"/api/embed/{poll['code']}").json()
        assert body["results"] is None
        assert body["branding"] is True

    def test_embedding_disabled(self, client, make_user, create_poll):
        _, headers = make_user("free")
        poll = create_poll(headers, embed_enabled=False)
        assert client.get(f"/api/embed/{poll['code']}").status_code == 404
