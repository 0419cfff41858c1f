"""Shot vocabulary: styles, subject modes and aspect ratios."""

from enum import Enum


class Style(str, Enum):
    """Shot style identifiers.

    The first nine belong to the product catalog, the last nine to the
    human portrait catalog.
    """

    # Product mode
    HERO = "HERO"
    MACRO = "MACRO"
    LIQUID = "LIQUID"
    SCULPTURAL = "SCULPTURAL"
    FLOATING = "FLOATING"
    SENSORY = "SENSORY"
    COLOR = "COLOR"
    INGREDIENT = "INGREDIENT"
    SURREAL = "SURREAL"

    # Human mode
    MCU = "MCU"
    MS = "MS"
    OS = "OS"
    WS = "WS"
    HA = "HA"
    LA = "LA"
    P = "P"
    THREE_Q = "ThreeQ"
    B = "B"


class SubjectMode(str, Enum):
    """Which catalog a batch is generated from."""

    PRODUCT = "product"
    HUMAN = "human"


class AspectRatio(str, Enum):
    """Output shapes offered to the user."""

    SQUARE = "1:1"
    PORTRAIT_2_3 = "2:3"
    LANDSCAPE_3_2 = "3:2"
    PORTRAIT_3_4 = "3:4"
    LANDSCAPE_4_3 = "4:3"
    PORTRAIT_9_16 = "9:16"
    LANDSCAPE_16_9 = "16:9"
    ULTRAWIDE_21_9 = "21:9"


class FramingQuality(str, Enum):
    """Analyzer verdict on how well the subject is framed."""

    OK = "ok"
    TOO_FAR = "too_far"
    CUT_OFF = "cut_off"
    EMPTY = "empty"
