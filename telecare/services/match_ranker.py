"""
Doctor ranking against free-text symptoms.

Pure functions over a static category table: no I/O, no persistence, same
inputs always give the same ordered output and reason strings.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

GENERAL_MEDICINE = "General Medicine"

EXACT_MATCH_POINTS = 15
SYMPTOM_KEYWORD_POINTS = 7
BIO_KEYWORD_POINTS = 3
SENIOR_EXPERIENCE_YEARS = 10
SENIOR_EXPERIENCE_POINTS = 3
EXPERIENCED_YEARS = 5
EXPERIENCED_POINTS = 1


@dataclass(frozen=True)
class SymptomCategory:
    category: str
    keywords: Tuple[str, ...]
    specializations: Tuple[str, ...]


SYMPTOM_CATEGORIES: Tuple[SymptomCategory, ...] = (
    SymptomCategory(
        "General Medicine",
        ("fever", "headache", "fatigue", "nausea", "vomiting", "dizziness", "weakness", "cold", "flu",
         "cough", "sore throat", "body ache"),
        ("General Medicine", "Internal Medicine", "Family Medicine"),
    ),
    SymptomCategory(
        "Cardiology",
        ("chest pain", "heart", "cardiac", "palpitations", "shortness of breath", "chest tightness",
         "irregular heartbeat", "heart attack", "angina", "hypertension", "blood pressure"),
        ("Cardiology", "Cardiovascular Surgery", "Heart"),
    ),
    SymptomCategory(
        "Orthopedics",
        ("bone", "joint", "muscle", "back pain", "knee pain", "fracture", "sprain", "arthritis",
         "shoulder pain", "hip pain", "ankle", "wrist", "spine", "neck pain"),
        ("Orthopedics", "Sports Medicine", "Bone", "Joint", "Spine"),
    ),
    SymptomCategory(
        "Dermatology",
        ("skin", "rash", "acne", "eczema", "psoriasis", "mole", "dermatitis", "itching", "dry skin",
         "spots", "blemishes", "allergic reaction", "hives"),
        ("Dermatology", "Skin"),
    ),
    SymptomCategory(
        "Neurology",
        ("migraine", "seizure", "neurological", "nerve", "brain", "memory", "coordination", "headache",
         "dizziness", "vertigo", "numbness", "tingling", "stroke"),
        ("Neurology", "Neurosurgery", "Brain", "Nerve"),
    ),
    SymptomCategory(
        "Gastroenterology",
        ("stomach", "digestive", "abdominal", "diarrhea", "constipation", "acid reflux", "heartburn",
         "bloating", "nausea", "stomach pain", "intestinal", "bowel"),
        ("Gastroenterology", "Digestive", "Stomach"),
    ),
    SymptomCategory(
        "Pediatrics",
        ("child", "children", "baby", "infant", "toddler", "kid", "pediatric", "vaccination", "growth",
         "development"),
        ("Pediatrics", "Child", "Children"),
    ),
    SymptomCategory(
        "Psychiatry",
        ("anxiety", "depression", "stress", "mental health", "mood", "panic", "psychological", "therapy",
         "counseling", "bipolar", "adhd"),
        ("Psychiatry", "Mental Health", "Psychology"),
    ),
    SymptomCategory(
        "ENT",
        ("ear", "nose", "throat", "hearing", "sinus", "tonsils", "voice", "swallowing", "snoring",
         "ear infection", "nasal congestion"),
        ("ENT", "Ear", "Nose", "Throat", "Otolaryngology"),
    ),
    SymptomCategory(
        "Ophthalmology",
        ("eye", "vision", "sight", "glasses", "contacts", "blurred vision", "eye pain", "red eyes",
         "cataracts", "glaucoma"),
        ("Ophthalmology", "Eye", "Vision"),
    ),
    SymptomCategory(
        "Urology",
        ("kidney", "bladder", "urinary", "urine", "prostate", "urination", "uti", "kidney stones",
         "incontinence"),
        ("Urology", "Kidney", "Bladder"),
    ),
    SymptomCategory(
        "Gynecology",
        ("women", "female", "period", "menstrual", "pregnancy", "gynecological", "reproductive", "ovarian",
         "cervical", "breast"),
        ("Gynecology", "Obstetrics", "Women's Health"),
    ),
)

CATEGORY_NAMES = tuple(entry.category for entry in SYMPTOM_CATEGORIES)


@dataclass
class RankedDoctor:
    doctor: Any
    score: int
    reasons: List[str] = field(default_factory=list)


def _contains_keyword(text: str, keyword: str) -> bool:
    return re.search(r"\b" + re.escape(keyword) + r"\b", text) is not None


def matched_keywords(text: str) -> List[str]:
    """Every table keyword found in ``text``, de-duplicated, in table order."""
    lowered = text.lower()
    found: List[str] = []
    for entry in SYMPTOM_CATEGORIES:
        for keyword in entry.keywords:
            if keyword not in found and _contains_keyword(lowered, keyword):
                found.append(keyword)
    return found


def detect_category(symptoms: str) -> str:
    """
    Best category for free-text symptoms.

    Each matched keyword contributes its length, so specific phrases beat
    short generic words. Ties keep the earlier table entry; no match at all
    means General Medicine.
    """
    lowered = (symptoms or "").lower()
    best_category, best_score = GENERAL_MEDICINE, 0
    for entry in SYMPTOM_CATEGORIES:
        score = sum(len(keyword) for keyword in entry.keywords if _contains_keyword(lowered, keyword))
        if score > best_score:
            best_category, best_score = entry.category, score
    return best_category


def _specialization_matches(specialization: str, entry: SymptomCategory) -> bool:
    spec = specialization.lower()
    if not spec:
        return False
    return any(
        _contains_keyword(spec, candidate.lower()) or _contains_keyword(candidate.lower(), spec)
        for candidate in entry.specializations
    )


def score_doctor(doctor: Any, symptoms: str, category: Optional[str]) -> RankedDoctor:
    """Score one doctor. Reasons are listed in scoring order."""
    text = (symptoms or "").lower()
    specialization = (getattr(doctor, "specialization", None) or "").strip()
    score = 0
    reasons: List[str] = []

    if category and specialization and specialization.lower() == category.strip().lower():
        score += EXACT_MATCH_POINTS
        reasons.append(f"Specializes in {specialization}")

    best_hits: List[str] = []
    for entry in SYMPTOM_CATEGORIES:
        if not _specialization_matches(specialization, entry):
            continue
        hits = [keyword for keyword in entry.keywords if _contains_keyword(text, keyword)]
        if len(hits) > len(best_hits):
            best_hits = hits
    if best_hits:
        score += SYMPTOM_KEYWORD_POINTS * len(best_hits)
        reasons.append("Matches your symptoms: " + ", ".join(best_hits))

    bio = (getattr(doctor, "bio", None) or "").lower()
    bio_hits = [keyword for keyword in matched_keywords(text) if _contains_keyword(bio, keyword)]
    if bio_hits:
        score += BIO_KEYWORD_POINTS * len(bio_hits)
        reasons.append("Experience with: " + ", ".join(bio_hits))

    years = getattr(doctor, "experience_years", None) or 0
    if years >= SENIOR_EXPERIENCE_YEARS:
        score += SENIOR_EXPERIENCE_POINTS
        reasons.append(f"{years} years of experience")
    elif years >= EXPERIENCED_YEARS:
        score += EXPERIENCED_POINTS
        reasons.append(f"{years} years of experience")

    return RankedDoctor(doctor=doctor, score=score, reasons=reasons)


def rank(doctors: Sequence[Any], symptoms: str, category: Optional[str]) -> List[RankedDoctor]:
    """
    Order doctors for display against the patient's symptoms and category.

    Highest score first; equal scores keep input order. Zero scores are
    dropped unless the category is General Medicine. When nothing is left
    the whole list comes back ordered by experience, most senior first.
    """
    scored = [score_doctor(doctor, symptoms, category) for doctor in doctors]
    ordered = sorted(scored, key=lambda ranked: ranked.score, reverse=True)

    keep_unscored = (category or "").strip().lower() == GENERAL_MEDICINE.lower()
    filtered = [ranked for ranked in ordered if ranked.score > 0 or keep_unscored]
    if filtered:
        return filtered

    return sorted(
        scored,
        key=lambda ranked: getattr(ranked.doctor, "experience_years", None) or 0,
        reverse=True,
    )
