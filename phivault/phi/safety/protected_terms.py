"""Curated clinical vocabularies used to veto recognizer false positives.

The sets here are defaults only. DomainFilter receives them through an
immutable FilterVocabulary so callers and tests can substitute their own.
"""

from __future__ import annotations

import re
from typing import Iterable

_WORD_SPLIT_RE = re.compile(r"[\s-]+")
_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)$")

# Conditions are clinical context, not identifiers.
EXCLUDED_ENTITY_TYPES: frozenset[str] = frozenset({"MEDICAL_CONDITION"})

CONDITION_TERMS: frozenset[str] = frozenset(
    {
        "diabetes", "cancer", "polymyalgia", "rheumatica", "syndrome", "disease", "disorder",
        "hypertension", "asthma", "arthritis", "infection", "fracture", "injury", "pmr", "copd", "chf",
        "anemia", "depression", "anxiety", "alzheimer", "dementia", "epilepsy", "seizure", "stroke",
        "migraine", "obesity", "osteoporosis", "fibromyalgia", "lupus", "sclerosis", "hepatitis",
        "hiv", "aids", "influenza", "pneumonia", "bronchitis", "tuberculosis", "malaria", "measles",
        "autism", "adhd", "schizophrenia", "bipolar", "paranoia", "insomnia", "apnea", "narcolepsy",
        "glaucoma", "cataract", "conjunctivitis", "blindness", "deafness", "tinnitus", "vertigo",
        "psoriasis", "eczema", "acne", "rosacea", "hives", "melanoma", "leukemia", "lymphoma",
        "sarcoma", "carcinoma", "tumor", "cyst", "polyp", "nodule", "lesion", "ulcer", "abscess",
        "hemorrhage", "thrombosis", "embolism", "infarction", "aneurysm", "stenosis", "ischemia",
        "arrhythmia", "fibrillation", "tachycardia", "bradycardia", "palpitation", "murmur", "angina",
        "cardiomyopathy", "myocarditis", "pericarditis", "endocarditis", "valvulopathy",
        "regurgitation", "prolapse", "atherosclerosis", "arteriosclerosis", "thrombophlebitis",
        "varicose", "dissection", "shock", "arrest", "failure", "insufficiency", "dysfunction",
        "deficiency",
    }
)

# Brand and generic drug names that NER models frequently tag as PERSON.
MEDICATION_TERMS: frozenset[str] = frozenset(
    {
        "tylenol", "acetaminophen", "advil", "motrin", "ibuprofen", "aleve", "naproxen",
        "aspirin", "lipitor", "atorvastatin", "crestor", "zocor", "simvastatin", "synthroid",
        "levothyroxine", "lasix", "furosemide", "coumadin", "warfarin", "eliquis", "xarelto",
        "plavix", "norvasc", "amlodipine", "lisinopril", "metoprolol", "metformin", "glucophage",
        "januvia", "ozempic", "lantus", "humalog", "prednisone", "zoloft", "sertraline",
        "prozac", "fluoxetine", "lexapro", "xanax", "ativan", "ambien", "adderall", "ritalin",
        "keppra", "lamictal", "neurontin", "gabapentin", "lyrica", "flonase", "zyrtec",
        "claritin", "benadryl", "singulair", "ventolin", "albuterol", "advair", "spiriva",
        "augmentin", "amoxicillin", "keflex", "cipro", "zithromax", "tamiflu", "humira",
        "enbrel", "remicade", "keytruda", "epipen", "nexium", "prilosec", "omeprazole",
        "zantac", "pepcid", "imodium", "miralax", "colace", "flomax", "viagra", "cialis",
    }
)

MEDICAL_TERMS: frozenset[str] = CONDITION_TERMS | MEDICATION_TERMS

# Dosage/frequency abbreviations misdetected as DATE_TIME ("2 tabs bid").
FREQUENCY_TERMS: frozenset[str] = frozenset(
    {
        "daily", "weekly", "monthly", "yearly", "hourly",
        "bid", "tid", "qid", "prn", "ac", "pc", "hs", "po", "iv", "im", "sc",
    }
)


def split_words(text: str) -> list[str]:
    """Lower-case *text* and split on whitespace and hyphens."""
    return _WORD_SPLIT_RE.split(text.lower())


def is_numeric_token(token: str) -> bool:
    # Empty fragments from leading/trailing separators count as numeric.
    return token == "" or bool(_NUMERIC_RE.match(token))


def contains_term(text: str, terms: Iterable[str] | frozenset[str]) -> bool:
    vocabulary = terms if isinstance(terms, frozenset) else frozenset(terms)
    return any(word in vocabulary for word in split_words(text))


def only_frequency_tokens(text: str, terms: Iterable[str] | frozenset[str]) -> bool:
    vocabulary = terms if isinstance(terms, frozenset) else frozenset(terms)
    return all(word in vocabulary or is_numeric_token(word) for word in split_words(text))


__all__ = [
    "EXCLUDED_ENTITY_TYPES",
    "CONDITION_TERMS",
    "MEDICATION_TERMS",
    "MEDICAL_TERMS",
    "FREQUENCY_TERMS",
    "split_words",
    "is_numeric_token",
    "contains_term",
    "only_frequency_tokens",
]
