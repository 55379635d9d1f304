from tracksort.infra.github_client import GitHubClient
from tracksort.infra.ngrok_client import NgrokClient

__all__ = [
    "GitHubClient",
    "NgrokClient",
]
