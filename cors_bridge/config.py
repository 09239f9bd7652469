from dataclasses import dataclass

from cors_bridge import vars as env


@dataclass(frozen=True)
class ProxyConfig:
    """Process-wide proxy settings, built once at startup and never mutated."""

    host: str = "0.0.0.0"
    port: int = 8080
    allowed_origin: str = "http://localhost:3000"
    fix_cookies: bool = True
    cookie_domain: str = ".example.com"
    timeout: float = 300.0

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        return cls(
            host=env.HOST,
            port=env.PORT,
            allowed_origin=env.ALLOWED_ORIGIN,
            fix_cookies=env.FIX_COOKIES,
            cookie_domain=env.COOKIE_DOMAIN,
            timeout=env.PROXY_TIMEOUT,
        )

    @property
    def usage_hint(self) -> str:
        return f"http://localhost:{self.port}/http://target-host/path"
