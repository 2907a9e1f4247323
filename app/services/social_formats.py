from dataclasses import dataclass


@dataclass(frozen=True)
class SocialFormat:
    key: str
    label: str
    width: int
    height: int
    aspect_ratio: str


SOCIAL_FORMATS: dict[str, SocialFormat] = {
    fmt.key: fmt
    for fmt in (
        SocialFormat("instagram-square", "Instagram Square (1:1)", 1080, 1080, "1:1"),
        SocialFormat("instagram-portrait", "Instagram Portrait (4:5)", 1080, 1350, "4:5"),
        SocialFormat("twitter-post", "Twitter Post (16:9)", 1200, 675, "16:9"),
        SocialFormat("twitter-header", "Twitter Header (3:1)", 1500, 500, "3:1"),
        SocialFormat("facebook-cover", "Facebook Cover (205:78)", 820, 312, "205:78"),
    )
}

DEFAULT_FORMAT = "instagram-square"


def get_social_format(key: str) -> SocialFormat | None:
    return SOCIAL_FORMATS.get(key)
