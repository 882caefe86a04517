"""
Target fields accepted by the animals table.

Order matters: the heuristic mapper walks fields in this order and the
first match wins.
"""
from enum import Enum
from typing import Dict, List


class TargetField(str, Enum):
    """Destination field identifiers for an imported animal record."""
    NAME = "name"
    TAG = "tag"
    TYPE = "type"
    BREED = "breed"
    AGE = "age"
    WEIGHT = "weight"
    STATUS = "status"
    SEX = "sex"
    DATE_OF_BIRTH = "date_of_birth"
    PURCHASE_COST = "purchase_cost"
    FEED_TYPE = "feed_type"
    NOTES = "notes"
    MICROCHIP_NUMBER = "microchip_number"
    BRAND_MARK = "brand_mark"
    COLOR_MARKINGS = "color_markings"


# Fields that let every imported row be referenced later.
IDENTITY_FIELDS = (TargetField.TAG, TargetField.NAME)

FIELD_LABELS: Dict[TargetField, str] = {
    TargetField.NAME: "Name",
    TargetField.TAG: "Tag Number",
    TargetField.TYPE: "Animal Type",
    TargetField.BREED: "Breed",
    TargetField.AGE: "Age",
    TargetField.WEIGHT: "Weight",
    TargetField.STATUS: "Health Status",
    TargetField.SEX: "Sex",
    TargetField.DATE_OF_BIRTH: "Date of Birth",
    TargetField.PURCHASE_COST: "Purchase Cost",
    TargetField.FEED_TYPE: "Feed Type",
    TargetField.NOTES: "Notes",
    TargetField.MICROCHIP_NUMBER: "Microchip Number",
    TargetField.BRAND_MARK: "Brand Mark",
    TargetField.COLOR_MARKINGS: "Color/Markings",
}

# Used to describe the schema to the LLM classifier.
FIELD_DESCRIPTIONS: Dict[TargetField, str] = {
    TargetField.NAME: "Animal name or identifier name",
    TargetField.TAG: "Tag number, ear tag, ID number, animal ID",
    TargetField.TYPE: "Animal type/species: Cattle, Sheep, Goat, Pig, Chicken, Duck, Horse, Cow",
    TargetField.BREED: "Breed of the animal",
    TargetField.AGE: "Age of the animal (e.g., 2 years, 18 months)",
    TargetField.WEIGHT: "Weight of the animal (e.g., 500 kg, 1200 lbs)",
    TargetField.STATUS: "Health status: Healthy, Under Observation, Sick, Pregnant",
    TargetField.SEX: "Sex/gender: male, female, bull, cow, heifer, steer, ram, ewe",
    TargetField.DATE_OF_BIRTH: "Date of birth, DOB, birth date",
    TargetField.PURCHASE_COST: "Purchase cost, price paid, acquisition cost",
    TargetField.FEED_TYPE: "Feed type, diet, food type",
    TargetField.NOTES: "Notes, comments, remarks, description",
    TargetField.MICROCHIP_NUMBER: "Microchip number, chip ID, RFID",
    TargetField.BRAND_MARK: "Brand mark, branding, brand",
    TargetField.COLOR_MARKINGS: "Color, markings, appearance, coat color",
}


def field_catalogue() -> List[Dict[str, str]]:
    """Return the field list in display order for pickers and prompts."""
    return [
        {"value": field.value, "label": FIELD_LABELS[field], "description": FIELD_DESCRIPTIONS[field]}
        for field in TargetField
    ]
