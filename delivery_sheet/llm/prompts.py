"""
Prompt and response schema for delivery receipt extraction.

The model receives one photographed receipt (or label sheet) and must
return a JSON array with one object per delivery found in the image.
"""

DELIVERY_FIELDS = ("date", "collection", "destination", "total", "observation")

FIELD_DESCRIPTIONS = {
    "date": "Delivery date formatted as DD/MM.",
    "collection": "Pickup (collection) address.",
    "destination": "Drop-off (destination / recipient) address.",
    "total": "Total amount charged for the service, as a numeric string.",
    "observation": "Any note or observation. May be an empty string.",
}


VISION_EXTRACTION_PROMPT = '''You are reading a photo of Brazilian courier delivery receipts or shipping labels.

The image may contain one or more individual deliveries. For EACH delivery you identify, extract:
1. "date": the delivery date, formatted as DD/MM. If a year is visible, drop it.
2. "collection": the PICKUP address. Usually the first address, or the sender.
3. "destination": the DESTINATION address. Usually the second address, or the recipient.
4. "total": the total amount charged for the service, if present. Look for numbers, possibly preceded by "R$". If there is no explicit amount, return "0".
5. "observation": any note or relevant detail (e.g. "frágil", "deixar na portaria"). If there is none, return an empty string.

IMPORTANT RULES:
- Be careful to distinguish the pickup address from the destination address
- Keep addresses exactly as written on the receipt
- Return the data as a JSON array of objects, even if you find only one delivery
- Every object must contain all five fields as strings

Return ONLY the JSON array, no additional text or markdown formatting.
'''


def get_vision_prompt() -> str:
    """
    Get the receipt extraction prompt.

    Returns:
        Prompt string
    """
    return VISION_EXTRACTION_PROMPT


def get_gemini_response_schema() -> dict:
    """Response schema in the Gemini ``responseSchema`` (OpenAPI subset) dialect."""
    return {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                name: {"type": "STRING", "description": FIELD_DESCRIPTIONS[name]}
                for name in DELIVERY_FIELDS
            },
            "required": list(DELIVERY_FIELDS),
        },
    }


def get_json_schema() -> dict:
    """
    Response schema as standard JSON Schema, for OpenAI-compatible servers.

    Structured outputs require an object at the top level, so the array
    is wrapped in a ``deliveries`` property.
    """
    return {
        "type": "object",
        "properties": {
            "deliveries": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        name: {"type": "string", "description": FIELD_DESCRIPTIONS[name]}
                        for name in DELIVERY_FIELDS
                    },
                    "required": list(DELIVERY_FIELDS),
                    "additionalProperties": False,
                },
            },
        },
        "required": ["deliveries"],
        "additionalProperties": False,
    }
