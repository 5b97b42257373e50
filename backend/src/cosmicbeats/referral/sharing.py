"""Share links for referral codes."""

from urllib.parse import quote, quote_plus

SHARE_TEXT = "Join CosmicBeats with my invite code!"


def referral_url(code: str, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/register?ref={quote(code)}"


def build_share_links(code: str, base_url: str) -> dict[str, str]:
    """Links per platform.

    Instagram and TikTok have no share intent, so they get the plain URL to copy.
    """
    url = referral_url(code, base_url)
    encoded = quote_plus(url)
    text = quote_plus(SHARE_TEXT)
    return {
        "default": url,
        "instagram": url,
        "tiktok": url,
        "whatsapp": f"https://wa.me/?text={text}%20{encoded}",
        "twitter": f"https://twitter.com/intent/tweet?text={text}&url={encoded}",
        "telegram": f"https://t.me/share/url?url={encoded}&text={text}",
    }
