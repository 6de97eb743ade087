import unicodedata


# apostrophe is not listed so contractions like "don't" stay in one token
PUNCTUATION_CHARS = frozenset(',.!?;:"()-–—')

STOP_WORDS = frozenset([
    # articles
    "a", "an", "the",
    # pronouns
    "i", "me", "my", "myself", "we", "our", "ours", "ourselves",
    "you", "your", "yours", "yourself", "yourselves",
    "he", "him", "his", "himself", "she", "her", "hers", "herself",
    "it", "its", "itself", "they", "them", "their", "theirs", "themselves",
    "what", "which", "who", "whom", "this", "that", "these", "those",
    # prepositions
    "in", "on", "at", "by", "for", "with", "about", "against", "between",
    "into", "through", "during", "before", "after", "above", "below",
    "to", "from", "up", "down", "out", "off", "over", "under",
    # conjunctions
    "and", "but", "or", "nor", "so", "yet", "both", "either", "neither",
    # auxiliary / modal verbs
    "is", "am", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "having", "do", "does", "did", "doing",
    "will", "would", "shall", "should", "may", "might", "must", "can", "could",
    # other function words
    "of", "as", "if", "than", "then", "because", "while", "although",
    "where", "when", "how", "why", "all", "each", "every", "any", "some",
    "no", "not", "only", "own", "same", "just", "also", "very", "too",
])


def tokenize(text: str) -> list[str]:
    """Split phrase text into word and punctuation tokens.

    Whitespace separates words; each character in PUNCTUATION_CHARS becomes
    its own single-character token.
    """
    tokens: list[str] = []
    current: list[str] = []
    for ch in text or "":
        if ch.isspace():
            if current:
                tokens.append("".join(current))
                current = []
        elif ch in PUNCTUATION_CHARS:
            if current:
                tokens.append("".join(current))
                current = []
            tokens.append(ch)
        else:
            current.append(ch)
    if current:
        tokens.append("".join(current))
    return tokens


def is_stop_word(token: str) -> bool:
    return token.lower() in STOP_WORDS


def is_punctuation_token(token: str) -> bool:
    if not token:
        return False
    if len(token) == 1 and token in PUNCTUATION_CHARS:
        return True
    return all(ch in PUNCTUATION_CHARS or unicodedata.category(ch).startswith("P") for ch in token)
