"""
classifier.py — Local, deterministic question classifier with canned answers.

An ordered tuple of KnowledgeRule(category, pattern, answer, allow_remote),
evaluated first-match-wins, falling through to "no match". Pure data + one
pure function: no network, no state, safe to call from any error path.

Two kinds of rule:
  - conversational (greeting / identity / capability / thanks): short answers,
    local only — the remote responder is never asked
  - wellness knowledge topics: multi-section answers (description, warning
    signs, suggestions, tests worth asking about); the remote responder may be
    tried first and this answer is the fallback
"""
import re
from dataclasses import dataclass
from typing import Optional

FALLBACK_REPLY = (
    "I'm not sure I understood that. Could you try rephrasing your question, "
    "or ask about the page you just summarised?"
)

MEDICAL_DISCLAIMER = (
    "This is general information, not a diagnosis. Please consult a doctor "
    "for advice about your situation."
)


@dataclass(frozen=True)
class KnowledgeRule:
    category: str
    pattern: re.Pattern[str]
    answer: str
    allow_remote: bool


@dataclass(frozen=True)
class Classification:
    category: Optional[str]
    answer: Optional[str]
    allow_remote: bool

    @property
    def matched(self) -> bool:
        return self.category is not None


NO_MATCH = Classification(category=None, answer=None, allow_remote=True)


def compose_answer(
    title: str,
    description: str,
    warnings: list[str],
    suggestions: list[str],
    tests: list[str],
) -> str:
    """Build the multi-section canned answer used by the knowledge topics."""

    def bullets(items: list[str]) -> str:
        return "\n".join(f"- {item}" for item in items)

    return (
        f"{title}\n\n"
        f"{description}\n\n"
        f"Warning signs:\n{bullets(warnings)}\n\n"
        f"Suggestions:\n{bullets(suggestions)}\n\n"
        f"Tests worth asking about:\n{bullets(tests)}\n\n"
        f"{MEDICAL_DISCLAIMER}"
    )


def _rx(expr: str) -> re.Pattern[str]:
    return re.compile(expr, re.IGNORECASE)


RULES: tuple[KnowledgeRule, ...] = (
    KnowledgeRule(
        category="greeting",
        pattern=_rx(r"^\s*(hi|hello|hey|hiya|good (morning|afternoon|evening))\b[\s!.?]*$"),
        answer=(
            "Hello! I can answer questions about the pages and voice notes you've "
            "captured. What would you like to know?"
        ),
        allow_remote=False,
    ),
    KnowledgeRule(
        category="identity",
        pattern=_rx(r"\b(who|what) are you\b|\byour name\b"),
        answer=(
            "I'm the summary assistant built into this extension. I keep your page "
            "summaries and voice notes and can help you make sense of them."
        ),
        allow_remote=False,
    ),
    KnowledgeRule(
        category="capability",
        pattern=_rx(r"\bwhat can you do\b|\bhow can you help\b|\b(help|features?)\s*\??\s*$"),
        answer=(
            "I can:\n"
            "- summarise the page you're on and store it\n"
            "- save voice notes alongside a summary\n"
            "- analyse your latest capture\n"
            "- answer general questions, including common health topics"
        ),
        allow_remote=False,
    ),
    KnowledgeRule(
        category="thanks",
        pattern=_rx(r"^\s*(thanks|thank you|thx|cheers)\b"),
        answer="You're welcome! Ask me anything else about your captures.",
        allow_remote=False,
    ),
    KnowledgeRule(
        category="fever",
        pattern=_rx(r"\b(fever|temperature|chills)\b"),
        answer=compose_answer(
            "Fever",
            "A fever is a body temperature above about 38°C (100.4°F), usually the "
            "body's response to an infection.",
            [
                "Temperature above 39.4°C (103°F) or lasting more than 3 days",
                "Stiff neck, confusion, or a rash that doesn't fade under pressure",
                "Difficulty breathing",
            ],
            ["Rest and drink plenty of fluids", "Paracetamol or ibuprofen as directed", "Light clothing"],
            ["Complete blood count (CBC)", "Urine test", "Malaria or dengue test where relevant"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="headache",
        pattern=_rx(r"\b(headaches?|migraines?)\b"),
        answer=compose_answer(
            "Headache",
            "Most headaches are tension-type or migraine and are not dangerous, "
            "but some patterns need prompt attention.",
            [
                "Sudden, severe 'worst ever' headache",
                "Headache with fever and stiff neck",
                "Weakness, numbness, or trouble speaking",
            ],
            ["Hydrate and rest in a dark, quiet room", "Limit screen time", "Keep a headache diary"],
            ["Blood pressure check", "Eye examination", "CT or MRI only if a doctor advises"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="cold_cough",
        pattern=_rx(r"\b(cough|cold|sore throat|runny nose|flu)\b"),
        answer=compose_answer(
            "Cold and cough",
            "Colds and coughs are usually viral and settle within 7–10 days.",
            [
                "Shortness of breath or chest pain",
                "Coughing up blood",
                "Symptoms lasting longer than 3 weeks",
            ],
            ["Warm fluids and honey", "Steam inhalation", "Rest and avoid smoke"],
            ["Chest X-ray if the cough persists", "Throat swab", "Oxygen saturation check"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="stomach",
        pattern=_rx(r"\b(stomach|abdominal|diarrh(o)?ea|vomit(ing)?|nausea|acidity)\b"),
        answer=compose_answer(
            "Stomach upset",
            "Stomach pain, nausea, or loose stools are commonly caused by infections, "
            "food intolerance, or acidity.",
            [
                "Severe or worsening abdominal pain",
                "Blood in vomit or stool",
                "Signs of dehydration such as very little urine",
            ],
            ["Oral rehydration solution", "Bland food in small portions", "Avoid spicy and oily food"],
            ["Stool test", "Abdominal ultrasound", "Liver function tests"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="sleep",
        pattern=_rx(r"\b(insomnia|can'?t sleep|sleep(ing)? (problem|issue|trouble))\b"),
        answer=compose_answer(
            "Sleep problems",
            "Trouble falling or staying asleep is often linked to stress, screens, "
            "caffeine, or an irregular schedule.",
            [
                "Loud snoring with pauses in breathing",
                "Daytime sleepiness that affects driving or work",
                "Low mood lasting more than two weeks",
            ],
            ["Fixed sleep and wake times", "No screens an hour before bed", "Avoid caffeine after noon"],
            ["Sleep study (polysomnography)", "Thyroid function test", "Iron / ferritin levels"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="stress",
        pattern=_rx(r"\b(stress(ed)?|anxiety|anxious|burn(ed|t)? ?out)\b"),
        answer=compose_answer(
            "Stress and anxiety",
            "Stress is a normal reaction to pressure, but persistent anxiety can "
            "affect sleep, focus, and physical health.",
            [
                "Panic attacks or chest tightness",
                "Thoughts of self-harm — seek help immediately",
                "Inability to carry out daily tasks",
            ],
            ["Regular exercise and breaks", "Breathing exercises", "Talk to someone you trust"],
            ["Screening questionnaire with a professional", "Thyroid function test", "Vitamin D / B12 levels"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="blood_pressure",
        pattern=_rx(r"\b(blood pressure|hypertension|bp)\b"),
        answer=compose_answer(
            "Blood pressure",
            "High blood pressure often has no symptoms but raises the risk of heart "
            "disease and stroke.",
            [
                "Readings above 180/120 mmHg",
                "Severe headache, chest pain, or vision changes",
                "Sudden weakness on one side of the body",
            ],
            ["Reduce salt", "Regular physical activity", "Limit alcohol and stop smoking"],
            ["Repeated BP measurements", "Kidney function tests", "Lipid profile", "ECG"],
        ),
        allow_remote=True,
    ),
    KnowledgeRule(
        category="diabetes",
        pattern=_rx(r"\b(diabet(es|ic)|blood sugar|glucose)\b"),
        answer=compose_answer(
            "Diabetes and blood sugar",
            "Diabetes means blood sugar stays higher than normal; it is managed with "
            "diet, activity, and sometimes medication.",
            [
                "Extreme thirst and frequent urination",
                "Confusion, sweating, or shaking (possible low sugar)",
                "Wounds that heal slowly",
            ],
            ["Balanced meals with fewer refined carbs", "Daily activity", "Regular sugar monitoring"],
            ["Fasting blood glucose", "HbA1c", "Kidney function and urine albumin"],
        ),
        allow_remote=True,
    ),
)


def classify(text: str) -> Classification:
    """Return the first rule that matches text, or NO_MATCH."""
    if not text or not text.strip():
        return NO_MATCH
    for rule in RULES:
        if rule.pattern.search(text):
            return Classification(
                category=rule.category,
                answer=rule.answer,
                allow_remote=rule.allow_remote,
            )
    return NO_MATCH


def local_reply(text: str) -> str:
    """Canned answer for text, or the generic rephrase prompt. Never empty."""
    return classify(text).answer or FALLBACK_REPLY
