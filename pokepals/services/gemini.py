"""Gemini client for card stats and card art."""
import json
import logging

import google.generativeai as genai
from google.genai import Client as ImageClient
from google.genai import types
from pydantic import BaseModel, ValidationError, field_validator

from pokepals.core import config
from pokepals.models.card import RARITIES
from pokepals.services.images import split_data_url, to_data_url

logger = logging.getLogger(__name__)

IMAGE_SIZES = ('1K', '2K', '4K')
BACK_IMAGE_SIZE = '1K'
CARD_ASPECT_RATIO = '3:4'
ELEMENT_TYPES = ('Fire', 'Water', 'Digital', 'Nature', 'Cosmic', 'Fighting', 'Psychic', 'Ghost')


class CardGenerationError(RuntimeError):
    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class CardStats(BaseModel):
    name: str
    type: str
    hp: int
    attack: int
    defense: int
    description: str
    moves: list[str]
    weakness: str
    rarity: str

    @field_validator('name', 'type', 'weakness', 'description')
    @classmethod
    def validate_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Value must not be blank.')
        return normalized

    @field_validator('moves')
    @classmethod
    def validate_moves(cls, value: list[str]) -> list[str]:
        moves = [move.strip() for move in value if move and move.strip()]
        if not moves:
            raise ValueError('At least one move is required.')
        return moves

    @field_validator('rarity')
    @classmethod
    def validate_rarity(cls, value: str) -> str:
        normalized = value.strip().capitalize()
        if normalized not in RARITIES:
            raise ValueError(f'Rarity must be one of {", ".join(RARITIES)}.')
        return normalized


FALLBACK_STATS = CardStats(
    name='Glitchmon',
    type='Digital',
    hp=404,
    attack=0,
    defense=0,
    description='An error occurred during scanning. This creature is missingno.',
    moves=['Reboot', 'Crash'],
    weakness='Bugs',
    rarity='Common',
)

STATS_RESPONSE_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'name': {'type': 'STRING'},
        'type': {'type': 'STRING'},
        'hp': {'type': 'INTEGER'},
        'attack': {'type': 'INTEGER'},
        'defense': {'type': 'INTEGER'},
        'description': {'type': 'STRING'},
        'moves': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'weakness': {'type': 'STRING'},
        'rarity': {'type': 'STRING', 'format': 'enum', 'enum': list(RARITIES)},
    },
    'required': ['name', 'type', 'hp', 'attack', 'defense', 'description', 'moves', 'weakness', 'rarity'],
}

STATS_PROMPT = f"""
You are the 'Rarity Algorithm' for a Trading Card Game.
Analyze this photo and assign a Rarity based on a strict 100-POINT SCORING RUBRIC.

SCORING RUBRIC (0-100 Points):
1. Environment (0-30pts): 0pts plain wall/indoors, 15pts outdoor/street, 30pts epic landscape, landmark, or space.
2. Subject (0-30pts): 0pts casual clothes, 15pts stylish outfit/accessories, 30pts costume, uniform, or formal wear.
3. Vibe/Lighting (0-20pts): 0pts standard lighting, 20pts neon, dramatic shadows, golden hour, or filters.
4. Extras (0-20pts): +10pts per extra feature: pets, props (instruments, sports gear), or group shot.

RARITY THRESHOLDS (based on total score):
- Exotic (96-100): "glitch in the matrix", cosplay, or surreal art vibes.
- Legendary (86-95): epic scenery, wedding/prom, or highly dramatic action.
- Rare (60-85): cool street fashion, pets included, or expressive emotion.
- Common (0-59): everyday selfies, video calls, or relaxation.

TASK:
- Calculate the score internally.
- Assign the strictly corresponding Rarity.
- Invent a creature Name based on the visual vibe.
- Assign an elemental Type ({", ".join(ELEMENT_TYPES)}).
- Create 2 Moves (1 Status move, 1 Attack move).
- Write a Pokedex description referencing the photo's context.

Return ONLY JSON.
"""

_configured = False
_image_client = None


def _get_model(model_name: str):
    global _configured
    if not _configured:
        genai.configure(api_key=config.GEMINI_API_KEY)
        _configured = True
    return genai.GenerativeModel(model_name)


def _get_image_client():
    global _image_client
    if _image_client is None:
        _image_client = ImageClient(api_key=config.GEMINI_API_KEY)
    return _image_client


def image_generation_config(size: str) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        response_modalities=['TEXT', 'IMAGE'],
        image_config=types.ImageConfig(image_size=size, aspect_ratio=CARD_ASPECT_RATIO),
    )


def _image_part(data_url: str) -> dict:
    mime_type, data = split_data_url(data_url)
    return {'mime_type': mime_type, 'data': data}


def _image_client_part(data_url: str) -> types.Part:
    mime_type, data = split_data_url(data_url)
    return types.Part.from_bytes(data=data, mime_type=mime_type)


def extract_image(response) -> str | None:
    """Return the first inline image of a response as a data URL."""
    candidates = getattr(response, 'candidates', None) or []
    if not candidates:
        return None

    content = getattr(candidates[0], 'content', None)
    for part in getattr(content, 'parts', None) or []:
        inline_data = getattr(part, 'inline_data', None)
        if inline_data is not None and getattr(inline_data, 'data', None):
            return to_data_url(inline_data.mime_type or 'image/png', inline_data.data)
    return None


def generate_card_stats(image_data_url: str) -> CardStats:
    """Invent a stat block for the photo; never raises."""
    try:
        model = _get_model(config.GEMINI_STATS_MODEL)
        response = model.generate_content(
            [STATS_PROMPT, _image_part(image_data_url)],
            generation_config=genai.GenerationConfig(
                response_mime_type='application/json',
                response_schema=STATS_RESPONSE_SCHEMA,
            ),
        )
        text = response.text
        if not text:
            raise ValueError('No text response from model')
        return CardStats.model_validate(json.loads(text))
    except (ValidationError, ValueError) as exc:
        logger.error('Model returned unusable stats: %s', exc)
        return FALLBACK_STATS.model_copy(deep=True)
    except Exception:
        logger.exception('Error generating stats')
        return FALLBACK_STATS.model_copy(deep=True)


def build_front_prompt(stats: CardStats, size: str) -> str:
    first_move = stats.moves[0]
    second_move = stats.moves[1] if len(stats.moves) > 1 else stats.moves[0]
    return f"""
Create a FULL TRADING CARD DESIGN (Front Side), {size} resolution, aspect ratio {CARD_ASPECT_RATIO}.

INPUT CONTEXT:
- Source Image: Use this person's pose and clothes to create a stylized 3D creature.
- Creature Name: "{stats.name}"
- HP: "{stats.hp}"
- Element: "{stats.type}"
- Rarity: "{stats.rarity}"
- Move 1: "{first_move}"
- Move 2: "{second_move}" (Damage: {stats.attack})

DESIGN INSTRUCTIONS:
1. LAYOUT: a professional trading card frame. Top header shows Name and HP clearly,
   the center holds the 3D creature art, the bottom panel shows the moves and text.
2. ART STYLE: high-quality 3D game asset / toy style. Do NOT use a real human face;
   use a stylized creature or mascot face. The border must match the '{stats.type}' theme.
   If Rarity is Legendary or Exotic, make the frame golden, holographic, or ornate.
3. TEXT RENDERING: legibly write "{stats.name}" and "{stats.hp} HP" at the top and
   the move names at the bottom.

Output the FINAL COMPOSITE CARD IMAGE.
"""


def build_back_prompt(stats: CardStats) -> str:
    return f"""
Design the BACK SIDE of a Trading Card for "{stats.name}", aspect ratio {CARD_ASPECT_RATIO}.

TEXT TO INCLUDE (legible typography):
- Description: "{stats.description}"
- Type: "{stats.type}"
- Weakness: "{stats.weakness}"

VISUAL THEME:
- Style: {stats.type}-themed artifact.
- If 'Digital': a high-tech datapad screen showing stats.
- If 'Nature': an ancient stone tablet with vines.
- If 'Fire': a burnt scroll or obsidian slab.
- General: glossy, high-end collectible finish.

Ensure the Description text is readable in the center of the design.
"""


def generate_card_front(image_data_url: str, stats: CardStats, size: str = '1K') -> str | None:
    if size not in IMAGE_SIZES:
        raise CardGenerationError('front', f'Unsupported image size {size!r}')

    try:
        response = _get_image_client().models.generate_content(
            model=config.GEMINI_IMAGE_MODEL,
            contents=[build_front_prompt(stats, size), _image_client_part(image_data_url)],
            config=image_generation_config(size),
        )
    except Exception as exc:
        logger.exception('Error generating card front')
        raise CardGenerationError('front', 'Failed to generate card art') from exc

    return extract_image(response)


def generate_card_back(stats: CardStats) -> str | None:
    try:
        response = _get_image_client().models.generate_content(
            model=config.GEMINI_IMAGE_MODEL,
            contents=[build_back_prompt(stats)],
            config=image_generation_config(BACK_IMAGE_SIZE),
        )
        return extract_image(response)
    except Exception:
        logger.exception('Error generating card back')
        return None
