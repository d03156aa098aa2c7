"""Constantes et utilitaires partagés par les tests"""


ALLOWED_ORIGIN = "http://localhost:3000"
NOW_MS = 1_700_000_000_000
HOUR_MS = 3_600_000


def make_token(length: int) -> str:
    """Token à trois segments base64url de la longueur demandée"""
    body = length - 2
    first = body // 3
    second = body // 3
    third = body - first - second
    segments = ["a" * first, "b" * second, "c" * third]
    # Une longueur ≡ 1 (mod 4) n'est pas du base64 valide
    for i, segment in enumerate(segments):
        if len(segment) % 4 == 1:
            segments[i] = segment[:-1]
            segments[(i + 1) % 3] += "d"
    return ".".join(segments)


def fragment_url(access_token: str, refresh_token: str = "refresh-token-value") -> str:
    return (
        f"{ALLOWED_ORIGIN}/confirme#access_token={access_token}"
        f"&refresh_token={refresh_token}&type=signup"
    )


class FakeClock:
    """Horloge contrôlable (epoch ms)"""

    def __init__(self, now: int = NOW_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms
