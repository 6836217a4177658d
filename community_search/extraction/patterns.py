"""
Pattern library for deterministic query understanding.

Canonical dictionaries (cities, branches, degrees, skill and service phrases)
and the compiled regular expressions built from them. Everything here is
immutable module state, compiled once at import and shared by the regex
extractor, the intent classifier and the LLM output normalizer.
"""
import re
from typing import Dict, List, Optional, Pattern, Tuple

from community_search.models.entities import Intent, TurnoverTier

# Alphanumeric boundaries; plain \b does not work around "b.e." or "b.tech"
_L = r"(?<![a-z0-9])"
_R = r"(?![a-z0-9])"


def _alternation(aliases: List[str]) -> str:
    # Longest alias first so "mechanical engineering" wins over "mechanical"
    return "|".join(sorted(aliases, key=len, reverse=True))


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------

CITY_ALIASES: Dict[str, List[str]] = {
    "Bangalore": ["bangalore", "bengaluru", "blr", "bangaluru"],
    "Chennai": ["chennai", "madras", "chn"],
    "Mumbai": ["mumbai", "bombay"],
    "Delhi": ["delhi", "new delhi", "ncr"],
    "Hyderabad": ["hyderabad", "hyd", "secunderabad"],
    "Kolkata": ["kolkata", "calcutta"],
    "Pune": ["pune", "poona"],
    "Coimbatore": ["coimbatore", "kovai", "cbe"],
    "Madurai": ["madurai"],
    "Trichy": ["trichy", "tiruchirappalli", "tiruchi"],
    "Salem": ["salem"],
    "Tirupur": ["tirupur", "tiruppur"],
    "Erode": ["erode"],
    "Kochi": ["kochi", "cochin"],
    "Thiruvananthapuram": ["thiruvananthapuram", "trivandrum"],
    "Mysore": ["mysore", "mysuru"],
    "Mangalore": ["mangalore", "mangaluru"],
    "Ahmedabad": ["ahmedabad"],
    "Gurgaon": ["gurgaon", "gurugram"],
    "Noida": ["noida"],
    "Visakhapatnam": ["visakhapatnam", "vizag"],
    "Pondicherry": ["pondicherry", "puducherry", "pondy"],
}

CITY_LOOKUP: Dict[str, str] = {
    alias: canonical for canonical, aliases in CITY_ALIASES.items() for alias in aliases
}

CITY_PATTERN: Pattern = re.compile(
    _L + "(" + _alternation([re.escape(a) for a in CITY_LOOKUP]) + ")" + _R
)


# ---------------------------------------------------------------------------
# Degrees and branches
# ---------------------------------------------------------------------------

# canonical -> regex alternatives (applied to normalized, lowercase text)
BRANCH_SYNONYMS: Dict[str, List[str]] = {
    "Mechanical": [r"mechanical engineering", r"mechanical", r"mech"],
    "Civil": [r"civil engineering", r"civil"],
    "ECE": [
        r"electronics (?:and|&) communications?(?: engineering)?",
        r"ece",
        r"(?<!and )(?<!& )electronics",
    ],
    "EEE": [
        r"electrical (?:and|&) electronics(?: engineering)?",
        r"eee",
        r"electrical",
    ],
    "CSE": [r"computer science(?: engineering| and engineering)?", r"cse", r"cs"],
    # "it" alone is a pronoun; require context
    "IT": [
        r"information technology",
        r"it(?= (?:branch|dept|department|stream|batch|graduates|students|engineers)" + _R + ")",
    ],
    "Textile": [r"textile technology", r"textile engineering", r"textiles?"],
    "Chemical": [r"chemical engineering", r"chemical"],
    "Biotechnology": [r"biotechnology", r"biotech"],
    "Production": [r"production engineering", r"production"],
    "Instrumentation": [r"instrumentation(?: engineering)?", r"eie"],
    "Aeronautical": [r"aeronautical(?: engineering)?", r"aero"],
}

DEGREE_SYNONYMS: Dict[str, List[str]] = {
    # Bare "be"/"me" are verbs; the dotted forms are required
    "B.E": [r"b\.e\.?", r"bachelor of engineering"],
    "B.Tech": [r"b\.? ?tech", r"bachelor of technology"],
    "M.E": [r"m\.e\.?", r"master of engineering"],
    "M.Tech": [r"m\.? ?tech", r"master of technology"],
    "MBA": [r"m\.?b\.?a\.?", r"master of business administration"],
    "MCA": [r"m\.?c\.?a\.?", r"master of computer applications"],
    "B.Sc": [r"b\.? ?sc\.?"],
    "M.Sc": [r"m\.? ?sc\.?"],
    "B.Arch": [r"b\.? ?arch"],
    "PhD": [r"ph\.? ?d\.?", r"doctorate"],
    "Diploma": [r"diploma"],
}


def _compile_canonical(synonyms: Dict[str, List[str]]) -> List[Tuple[str, Pattern]]:
    return [
        (canonical, re.compile(_L + "(?:" + _alternation(alts) + ")" + _R))
        for canonical, alts in synonyms.items()
    ]


BRANCH_PATTERNS: List[Tuple[str, Pattern]] = _compile_canonical(BRANCH_SYNONYMS)
DEGREE_PATTERNS: List[Tuple[str, Pattern]] = _compile_canonical(DEGREE_SYNONYMS)


# ---------------------------------------------------------------------------
# Skills (technical) and services (business offerings)
# ---------------------------------------------------------------------------

SKILL_SYNONYMS: Dict[str, List[str]] = {
    "python": [r"python"],
    "java": [r"java"],
    "javascript": [r"javascript", r"js", r"node(?:\.?js)?", r"react(?:\.?js)?"],
    "machine learning": [r"machine learning", r"ml"],
    "artificial intelligence": [r"artificial intelligence", r"ai", r"gen ?ai"],
    "data science": [r"data science", r"data analytics", r"data analysis"],
    "cloud": [r"cloud(?: computing)?", r"aws", r"azure", r"gcp"],
    "devops": [r"devops", r"kubernetes", r"docker"],
    "android": [r"android"],
    "ios": [r"ios", r"iphone app"],
    "blockchain": [r"blockchain", r"crypto(?:currency)?"],
    "sap": [r"sap"],
    "embedded systems": [r"embedded(?: systems)?", r"iot"],
    "cad": [r"cad", r"autocad", r"solidworks"],
    "ui/ux": [r"ui/ux", r"ux", r"ui design"],
}

SERVICE_SYNONYMS: Dict[str, List[str]] = {
    "web development": [r"web development", r"web developers?", r"web design", r"websites?"],
    "app development": [r"app development", r"mobile apps?", r"app developers?"],
    "software development": [r"software development", r"software services", r"software compan(?:y|ies)"],
    "digital marketing": [r"digital marketing", r"social media marketing", r"online marketing"],
    "seo": [r"seo", r"search engine optimi[sz]ation"],
    "it consulting": [r"it consulting", r"it services", r"it solutions"],
    "consulting": [r"consulting", r"consultancy", r"consultants?"],
    "manufacturing": [r"manufacturing", r"manufacturers?", r"factory"],
    "construction": [r"construction", r"builders?", r"civil contractors?"],
    "architecture": [r"architecture", r"architects?"],
    "interior design": [r"interior design(?:ers?)?", r"interiors"],
    "real estate": [r"real estate", r"property", r"realtors?"],
    "packaging": [r"packaging"],
    "logistics": [r"logistics", r"transport(?:ation)?", r"shipping"],
    "graphic design": [r"graphic design(?:ers?)?", r"branding"],
    "accounting": [r"accounting", r"accountants?", r"chartered accountants?", r"audit(?:ing|ors?)?", r"tax(?:ation)? services"],
    "legal services": [r"legal services", r"lawyers?", r"advocates?"],
    "insurance": [r"insurance"],
    "healthcare": [r"healthcare", r"hospitals?", r"clinics?", r"pharma(?:ceuticals?)?"],
    "education": [r"education", r"training", r"e-?learning", r"coaching"],
    "recruitment": [r"recruitment", r"hiring agenc(?:y|ies)", r"staffing", r"hr services"],
    "event management": [r"event management", r"events?"],
    "catering": [r"catering", r"caterers?", r"restaurants?"],
    "printing": [r"printing", r"printers"],
    "solar energy": [r"solar(?: energy| panels?)?", r"renewable energy"],
    "export": [r"exports?", r"exporters?", r"import export"],
}

SKILL_PATTERNS: List[Tuple[str, Pattern]] = _compile_canonical(SKILL_SYNONYMS)
SERVICE_PATTERNS: List[Tuple[str, Pattern]] = _compile_canonical(SERVICE_SYNONYMS)

# Suppress "it services" leaking into the generic consulting entry and friends
SERVICE_SUBSUMES: Dict[str, List[str]] = {
    "it consulting": ["consulting"],
}


# ---------------------------------------------------------------------------
# Graduation years
# ---------------------------------------------------------------------------

MIN_YEAR = 1950
MAX_YEAR = 2049
TWO_DIGIT_PIVOT = 50

_YEAR4 = r"(19[5-9]\d|20[0-4]\d)"
_BATCH_WORDS = r"(?:batch(?:es|mates?)?|pass ?outs?|passed out|graduat(?:ed|es?|ing)|grads?|class of|alumni)"

YEAR_RANGE_PATTERN: Pattern = re.compile(
    r"\b" + _YEAR4 + r"\s*(?:-|to|till|until|through)\s*" + _YEAR4 + r"\b"
)
YEAR4_PATTERN: Pattern = re.compile(r"\b" + _YEAR4 + r"\b")
YEAR2_PATTERNS: List[Pattern] = [
    # "95 batch", "'95 passout"
    re.compile(r"(?<![\d])'?(\d{2})\s*" + _BATCH_WORDS + r"\b"),
    # "batch of 95", "class of '98"
    re.compile(r"\b" + _BATCH_WORDS + r"\s*(?:of|in)?\s*'?(\d{2})(?!\d)"),
    # bare "'95"
    re.compile(r"(?<![\w])'(\d{2})(?!\d|'?s\b)"),
]

# "early 90s", "mid-90s", "late 1990s", "the 2000s"
DECADE_PATTERN: Pattern = re.compile(
    r"(?<![\w'])(?:(early|mid|late)[\s-]*)?(19|20)?(\d)0'?s\b"
)
DECADE_SPANS: Dict[Optional[str], Tuple[int, int]] = {
    "early": (0, 3),
    "mid": (4, 6),
    "late": (7, 9),
    None: (0, 9),
}


# ---------------------------------------------------------------------------
# Turnover
# ---------------------------------------------------------------------------

CRORE = 10_000_000
LAKH = 100_000
TURNOVER_TIER_BOUNDS: Dict[TurnoverTier, Tuple[Optional[int], Optional[int]]] = {
    TurnoverTier.LOW: (None, 2 * CRORE),
    TurnoverTier.MEDIUM: (2 * CRORE, 10 * CRORE),
    TurnoverTier.HIGH: (10 * CRORE, None),
}

TURNOVER_TIER_PATTERNS: List[Tuple[TurnoverTier, Pattern]] = [
    (TurnoverTier.HIGH, re.compile(r"\b(?:high|large|big|huge|top) (?:turnover|revenue)\b|\b(?:large|big) (?:businesses|companies|firms)\b")),
    (TurnoverTier.MEDIUM, re.compile(r"\b(?:medium|mid|moderate|average)[- ]?(?:sized? )?(?:turnover|revenue|businesses|companies)\b")),
    (TurnoverTier.LOW, re.compile(r"\b(?:low|small) (?:turnover|revenue)\b|\bsmall (?:businesses|companies|firms)\b")),
]

TURNOVER_AMOUNT_PATTERN: Pattern = re.compile(
    r"\b(?:turnover|revenue)\s*(?:of\s*)?(above|over|more than|greater than|exceeding|at least|below|under|less than|upto|up to)\s*"
    r"(?:rs\.?\s*|inr\s*|₹\s*)?(\d+(?:\.\d+)?)\s*(crores?|cr|lakhs?|lacs?|l)\b"
)


def tier_for_amount(amount: float) -> TurnoverTier:
    if amount >= 10 * CRORE:
        return TurnoverTier.HIGH
    if amount >= 2 * CRORE:
        return TurnoverTier.MEDIUM
    return TurnoverTier.LOW


# ---------------------------------------------------------------------------
# Person names
# ---------------------------------------------------------------------------

NAME_PATTERNS: List[Pattern] = [
    re.compile(r"\b(?:anyone|someone|member|person|people)?\s*(?:named|called)\s+([a-z][a-z.']*(?:\s+[a-z][a-z.']*){0,2})"),
    re.compile(r"\b(?:contact|contacts|details|phone number|number|email|profile)\s+(?:of|for)\s+([a-z][a-z.']*(?:\s+[a-z][a-z.']*){0,2})"),
    re.compile(r"\bwho is\s+([a-z][a-z.']*(?:\s+[a-z][a-z.']*){0,2})"),
]

# Tokens that end a captured name (or show the capture is not a name)
NAME_STOPWORDS = {
    "in", "from", "at", "of", "for", "with", "and", "or", "who", "the", "a", "an",
    "batch", "passout", "working", "doing", "living", "based", "studied", "please",
    "they", "them", "their", "those", "these", "him", "her", "his", "all", "everyone",
    "members", "member", "people", "someone", "anyone", "this", "that", "me", "us",
    "company", "business", "services", "alumni",
}


# ---------------------------------------------------------------------------
# Intent rule groups (order is the tie-break order)
# ---------------------------------------------------------------------------

INTENT_RULES: List[Tuple[Intent, List[str]]] = [
    (Intent.FIND_ALUMNI_BUSINESS, [
        r"alumni (?:with|running|owning|who own|who run|having) (?:a |their own )?(?:business(?:es)?|compan(?:y|ies)|startups?)",
        r"alumni[- ]owned",
        r"alumni (?:businesses|companies|entrepreneurs|startups|founders)",
        r"batchmates? (?:with|running|who run|who own) (?:a )?(?:business(?:es)?|compan(?:y|ies))",
        r"(?:businesses|companies|startups) (?:run|owned|started|founded) by (?:alumni|batchmates|our members)",
        r"entrepreneurs? from (?:my|our) batch",
    ]),
    (Intent.FIND_SPECIFIC_PERSON, [
        r"named",
        r"called",
        r"who is",
        r"contact (?:of|for|details of)",
        r"details of",
        r"phone number of",
        r"email (?:of|for)",
        r"profile of",
    ]),
    (Intent.FIND_PEERS, [
        r"batchmates?",
        r"batch(?:es)?",
        r"pass ?outs?",
        r"passed out",
        r"classmates?",
        r"alumni",
        r"graduated",
        r"graduates",
        r"same year",
        r"seniors?",
        r"juniors?",
        r"class of",
        r"studied",
    ]),
    (Intent.FIND_BUSINESS, [
        r"compan(?:y|ies)",
        r"business(?:es)?",
        r"providers?",
        r"services in",
        r"startups?",
        r"agenc(?:y|ies)",
        r"vendors?",
        r"suppliers?",
        r"consultants?",
        r"freelancers?",
        r"contractors?",
        r"firms?",
        r"manufacturers?",
        r"dealers?",
        r"who can (?:help|build|make|do)",
    ]),
    (Intent.COMPARE, [
        r"compare",
        r"comparison",
        r"versus",
        r"vs\.?",
        r"difference between",
    ]),
    (Intent.GET_INFO, [
        r"who are they",
        r"their (?:contacts?|details|phone|numbers|emails?)",
        r"tell me more",
        r"more about",
        r"more details",
        r"show more",
    ]),
    (Intent.LIST_MEMBERS, [
        r"list (?:all )?(?:the )?members",
        r"all members",
        r"show (?:me )?(?:all|everyone)",
        r"everyone",
        r"members? list",
        r"how many members",
    ]),
]

COMPILED_INTENT_RULES: List[Tuple[Intent, List[Pattern]]] = [
    (intent, [re.compile(_L + term + _R) for term in terms]) for intent, terms in INTENT_RULES
]


# ---------------------------------------------------------------------------
# Follow-ups ("who are they?", "show more")
# ---------------------------------------------------------------------------

NEXT_PAGE_PATTERNS: List[Pattern] = [
    re.compile(r"^(?:show |give )?(?:me )?more(?: results| please)?$"),
    re.compile(r"\bnext page\b"),
]

FOLLOWUP_PATTERNS: List[Pattern] = [
    re.compile(r"\b(?:they|them|their|those|these)\b"),
    re.compile(r"^(?:show |give |tell )?(?:me )?more details$"),
] + NEXT_PAGE_PATTERNS
