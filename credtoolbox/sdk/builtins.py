"""Built-in credential types.

Descriptions for well known types whose records carry none, and the list of
HTTPS types imported at setup so the registry does not start empty.
"""

from __future__ import annotations

W3C_CREDENTIALS_V1 = "https://www.w3.org/2018/credentials/v1"
ELASTOS_NS = "https://ns.elastos.org/credentials"

BUILT_IN_DESCRIPTIONS: dict[tuple[str, str], str] = {
    # Bases
    (W3C_CREDENTIALS_V1, "VerifiableCredential"):
        "This is the base type for all verifiable credentials. All credentials have to implement at least "
        "this type, but there are no specific properties for it.",
    (f"{ELASTOS_NS}/displayable/v1", "DisplayableCredential"):
        "This custom elastos foundation type is used as a standardized way to better display credentials "
        "using an icon, a title and a description. When a credential implements those properties, it will "
        "be displayed in a better way in identity wallets.",
    (f"{ELASTOS_NS}/context/v1", "ContextDefCredential"):
        "This is a special credential, used by developers (and by this toolbox) to store newly created "
        "credential types on the identity chain. Standard user credentials usually don't use this type.",
    (f"{ELASTOS_NS}/v1", "SelfProclaimedCredential"):
        "This type is usually used to inform that a credential was self-created, meaning that a user has "
        "created the credential for himself, probably in his identity wallet (eg: name, birth date...).",
    (f"{ELASTOS_NS}/v1", "SensitiveCredential"):
        "This sensitive credential type is useful to inform that user should pay attention - meaning, be "
        "careful to not share it with everyone - to the implementing credential. For instance, social "
        "security number, credit card number... Identity wallets usually show a specific visual indicator "
        "for such credentials.",

    # Social
    (f"{ELASTOS_NS}/social/v1", "SocialCredential"):
        "This credential context contains several properties such as telegram or wechat, that can be used "
        "independently in credentials to describe social network accounts.",
    (f"{ELASTOS_NS}/social/twitter/v1", "TwitterCredential"):
        "Type for Twitter (twitter.com) accounts. The twitter field should be a @identifier.",
    (f"{ELASTOS_NS}/social/tumblr/v1", "TumblrCredential"):
        "Type for Tumblr (tumblr.com) accounts.",
    (f"{ELASTOS_NS}/social/wechat/v1", "WechatCredential"):
        "Type for Wechat accounts (messaging application).",
    (f"{ELASTOS_NS}/social/facebook/v1", "FacebookCredential"):
        "Type for Facebook (facebook.com) accounts.",
    (f"{ELASTOS_NS}/social/telegram/v1", "TelegramCredential"):
        "Type for Telegram accounts (messaging application).",
    (f"{ELASTOS_NS}/social/weibo/v1", "WeiboCredential"):
        "Type for Weibo accounts (\"Chinese Twitter\").",
    (f"{ELASTOS_NS}/social/instagram/v1", "InstagramCredential"):
        "Type for Instagram (instagram.com) accounts.",
    (f"{ELASTOS_NS}/social/linkedin/v1", "LinkedinCredential"):
        "Type for LinkedIn (linkedin.com) accounts.",
    (f"{ELASTOS_NS}/social/qq/v1", "QQCredential"):
        "Type for QQ accounts.",

    # Profile
    (f"{ELASTOS_NS}/profile/v1", "ProfileCredential"):
        "This credential context contains several properties such as name or gender, that can be used "
        "independently in credentials to describe a user, a person.",
    (f"{ELASTOS_NS}/profile/name/v1", "NameCredential"):
        "Standard type that describes a person's name. A name can be described using different fields "
        "depending on the context, such as givenName, or nickName.",
    (f"{ELASTOS_NS}/profile/nationality/v1", "NationalityCredential"):
        "Standard type that describes a person's nationality. The nationality format is broad, please "
        "refer to schema.org.",
    (f"{ELASTOS_NS}/profile/gender/v1", "GenderCredential"):
        "Standard type that describes a person's gender. Usually, male or female.",
    (f"{ELASTOS_NS}/profile/url/v1", "URLCredential"):
        "Standard type that describes a URL. This can represent a personal or a business website.",
    (f"{ELASTOS_NS}/profile/description/v1", "DescriptionCredential"):
        "Standard type that gives a brief introduction about a person. For instance, a short biography.",
    (f"{ELASTOS_NS}/profile/avatar/v1", "AvatarCredential"):
        "Standard type that represents a person's avatar, i.e. a small visual representation picture. "
        "Refer to schema.org for all possible fields an 'image' can contain. Usually, 'contentUrl' is the "
        "most important field.",
    (f"{ELASTOS_NS}/profile/email/v1", "EmailCredential"):
        "Standard type that describes emails. The email field can be a single email, or an array of emails.",
    (f"{ELASTOS_NS}/email/v1", "EmailCredential"):
        "Standard type that describes email credentials.",

    # Wallet
    (f"{ELASTOS_NS}/wallet/v1", "WalletCredential"):
        "This credential type allows creating credentials with wallet addresses. Most fields are optional "
        "and can be used to describe the wallet blockchain, address, address type, balance, public key, etc.",
}

PRELOADED_TYPES: list[tuple[str, str]] = [
    (W3C_CREDENTIALS_V1, "VerifiableCredential"),

    (f"{ELASTOS_NS}/v1", "SelfProclaimedCredential"),
    (f"{ELASTOS_NS}/v1", "SensitiveCredential"),
    (f"{ELASTOS_NS}/displayable/v1", "DisplayableCredential"),
    (f"{ELASTOS_NS}/context/v1", "ContextDefCredential"),

    (f"{ELASTOS_NS}/profile/nationality/v1", "NationalityCredential"),
    (f"{ELASTOS_NS}/profile/gender/v1", "GenderCredential"),
    (f"{ELASTOS_NS}/profile/url/v1", "URLCredential"),
    (f"{ELASTOS_NS}/profile/description/v1", "DescriptionCredential"),
    (f"{ELASTOS_NS}/profile/avatar/v1", "AvatarCredential"),
    (f"{ELASTOS_NS}/profile/name/v1", "NameCredential"),
    (f"{ELASTOS_NS}/profile/email/v1", "EmailCredential"),

    (f"{ELASTOS_NS}/wallet/v1", "WalletCredential"),

    (f"{ELASTOS_NS}/social/twitter/v1", "TwitterCredential"),
    (f"{ELASTOS_NS}/social/tumblr/v1", "TumblrCredential"),
    (f"{ELASTOS_NS}/social/wechat/v1", "WechatCredential"),
    (f"{ELASTOS_NS}/social/facebook/v1", "FacebookCredential"),
    (f"{ELASTOS_NS}/social/telegram/v1", "TelegramCredential"),
    (f"{ELASTOS_NS}/social/weibo/v1", "WeiboCredential"),
    (f"{ELASTOS_NS}/social/instagram/v1", "InstagramCredential"),
    (f"{ELASTOS_NS}/social/linkedin/v1", "LinkedinCredential"),
    (f"{ELASTOS_NS}/social/qq/v1", "QQCredential"),
]


def get_built_in_description(context: str, short_type: str) -> str | None:
    return BUILT_IN_DESCRIPTIONS.get((context, short_type))
