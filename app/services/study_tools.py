"""
AI study tools: vocabulary flashcards, essay enhancement, mock answer
evaluation and structured mains evaluation.

Each tool builds its prompts, calls the provider through ``AIClient`` and
shapes the reply.  Provider failures propagate as ``AIProviderError`` so the
router can map them to HTTP responses; vocabulary generation is the only
tool with a local fallback.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.services.ai_providers import AIClient, AIProviderError
from app.utils.helpers import count_words, extract_json_array, strip_code_fences
from app.utils.languages import language_name

logger = logging.getLogger(__name__)


CATEGORY_FOCUS = {
    "general": "General Studies, administration, governance, and public service",
    "history": "Indian history, world history, ancient, medieval, and modern periods",
    "geography": "Physical geography, human geography, Indian geography, world geography",
    "polity": "Constitution, governance, political systems, rights, duties, and administration",
    "economics": "Indian economy, economic concepts, development, finance, and trade",
    "science": "Science and technology, innovations, research, and scientific concepts",
    "environment": "Environmental science, ecology, conservation, climate change, and sustainability",
    "current_affairs": "Recent events, contemporary issues, and current developments",
    "ethics": "Ethics, moral philosophy, values, integrity, and ethical decision making",
    "international": "International relations, diplomacy, global affairs, and foreign policy",
}

ESSAY_TYPES = {
    "general": "general essay writing with clear structure and logical flow",
    "current_affairs": "current affairs essay with contemporary relevance and balanced analysis",
    "social_issues": "social issues essay with critical analysis and practical solutions",
    "economic": "economic essay with data-driven analysis and policy implications",
    "political": "political science essay with governance perspective and administrative insights",
    "history": "history and culture essay with historical context and cultural significance",
    "science_tech": "science and technology essay with technical accuracy and future implications",
    "environment": "environmental essay with ecological awareness and sustainable solutions",
    "ethics": "ethics and philosophy essay with moral reasoning and ethical considerations",
    "international": "international relations essay with global perspective and diplomatic analysis",
}

EXAM_NAMES = {
    "pcs": "Provincial Civil Service (PCS)",
    "upsc": "Union Public Service Commission (UPSC)",
    "ssc": "Staff Selection Commission (SSC)",
    "other": "Competitive Exam",
}

QUESTION_TYPES = {
    "essay": "Essay Writing",
    "short_answer": "Short Answer Questions",
    "analytical": "Analytical Questions",
    "current_affairs": "Current Affairs",
    "general_studies": "General Studies",
}

# (term, definition, Hindi translation)
FALLBACK_TERMS = {
    "general": [
        ("Governance", "The way in which a country or organization is controlled and managed", "शासन"),
        ("Administration", "The process of managing and organizing public affairs", "प्रशासन"),
        ("Bureaucracy", "A system of government in which most important decisions are taken by state officials", "नौकरशाही"),
        ("Democracy", "A system of government by the whole population through elected representatives", "लोकतंत्र"),
        ("Constitution", "A body of fundamental principles according to which a state is governed", "संविधान"),
    ],
    "history": [
        ("Independence", "The fact or state of being independent", "स्वतंत्रता"),
        ("Revolution", "A forcible overthrow of a government or social order", "क्रांति"),
        ("Empire", "An extensive group of states under a single supreme authority", "साम्राज्य"),
        ("Civilization", "The stage of human social development and organization", "सभ्यता"),
        ("Colonization", "The action of establishing control over indigenous people", "उपनिवेशीकरण"),
    ],
    "geography": [
        ("Ecosystem", "A biological community of interacting organisms and their environment", "पारिस्थितिकी तंत्र"),
        ("Biodiversity", "The variety of life in the world or in a particular habitat", "जैव विविधता"),
        ("Climate", "The weather conditions prevailing in an area over a long period", "जलवायु"),
        ("Topography", "The arrangement of physical features of an area", "स्थलाकृति"),
        ("Sustainability", "The ability to maintain ecological balance", "सतत विकास"),
    ],
}


class InvalidAIFormat(Exception):
    """The model's reply could not be parsed as the expected JSON."""

    def __init__(self, raw: str) -> None:
        super().__init__("AI returned invalid format")
        self.raw = raw


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

def fallback_flashcards(category: str, count: int) -> List[Dict[str, str]]:
    """Built-in flashcards used when generation fails (unknown category → general)."""
    terms = FALLBACK_TERMS.get(category) or FALLBACK_TERMS["general"]
    return [
        {
            "term": term,
            "pronunciation": f"/{term.lower()}/",
            "definition": definition,
            "translation": translation,
            "example": f"The concept of {term.lower()} is important in competitive exams.",
        }
        for term, definition, translation in terms[:max(count, 0)]
    ]


def _vocabulary_prompt(count: int, category_desc: str, source: str, target: str, difficulty: str) -> str:
    return f"""You are Indicore, an AI-powered vocabulary specialist for competitive exams like PCS, UPSC, and SSC. You excel at creating bilingual vocabulary flashcards for exam preparation.

**Your Task:**
Generate {count} vocabulary flashcards focused on {category_desc} for competitive exam preparation.

**Requirements:**
- Source Language: {source}
- Target Language: {target}
- Difficulty Level: {difficulty}
- Category Focus: {category_desc}

**Flashcard Format:**
For each vocabulary item, provide:
1. **term**: The word/phrase in {source}
2. **pronunciation**: Phonetic pronunciation guide
3. **definition**: Clear, exam-relevant definition in {source}
4. **translation**: Accurate translation in {target}
5. **example**: Practical example sentence using the term

**Response Format:**
Return a JSON array of flashcards with the exact structure:
[
  {{
    "term": "word in source language",
    "pronunciation": "phonetic guide",
    "definition": "clear definition",
    "translation": "translation in target language",
    "example": "example sentence"
  }}
]

**Quality Guidelines:**
- Prioritize vocabulary that appears frequently in UPSC, PCS, and SSC exam papers
- Definitions must be accurate, concise, and exam-relevant
- Beginner: basic administrative and governance terms; Intermediate: GS paper terms; Advanced: specialized concepts
- Terms must be directly relevant to the selected category"""


async def generate_vocabulary(
    client: AIClient,
    category: str,
    source_language: str,
    target_language: str,
    difficulty: str = "intermediate",
    count: int = 10,
) -> List[Dict[str, Any]]:
    """
    Generate flashcards for *category*.

    Upstream HTTP errors propagate; any other failure (unparseable reply,
    transport error) falls back to the built-in term lists.
    """
    category_desc = CATEGORY_FOCUS.get(category, "general studies and administration")
    source = language_name(source_language, source_language)
    target = language_name(target_language, target_language)

    messages = [
        {"role": "system", "content": _vocabulary_prompt(count, category_desc, source, target, difficulty)},
        {
            "role": "user",
            "content": (
                f"Generate {count} vocabulary flashcards for {category_desc} with {source} to "
                f"{target} translation. Difficulty: {difficulty}. Return as JSON array."
            ),
        },
    ]

    try:
        content = await client.complete(messages, max_tokens=3000, temperature=0.3)
    except AIProviderError as exc:
        if exc.is_upstream_http_error:
            raise
        logger.warning("Vocabulary generation failed, using fallback cards: %s", exc)
        return fallback_flashcards(category, count)
    except httpx.HTTPError as exc:
        logger.warning("Vocabulary generation failed, using fallback cards: %s", exc)
        return fallback_flashcards(category, count)

    parsed = extract_json_array(content)
    flashcards = [card for card in parsed or [] if isinstance(card, dict)]
    if not flashcards:
        logger.warning("Vocabulary reply was not a JSON array; using fallback cards")
        return fallback_flashcards(category, count)
    return flashcards


# ---------------------------------------------------------------------------
# Essay enhancement
# ---------------------------------------------------------------------------

async def enhance_essay(
    client: AIClient,
    essay_text: str,
    source_language: str,
    target_language: str,
    essay_type: Optional[str] = None,
    word_limit: Optional[int] = None,
) -> str:
    """Translate and improve an essay; returns the enhanced text only."""
    source = language_name(source_language, source_language)
    target = language_name(target_language, target_language)
    essay_desc = ESSAY_TYPES.get(essay_type or "", "general essay writing")
    length_hint = f"(target: {word_limit} words)" if word_limit else ""

    system_prompt = f"""You are Indicore, an AI-powered essay enhancement specialist for competitive exams like PCS, UPSC, and SSC. You excel at:

1. **Language Translation & Enhancement**: Convert essays from {source} to {target} while improving quality
2. **Structure Improvement**: Organize content with clear introduction, body paragraphs, and conclusion
3. **Vocabulary Enhancement**: Use appropriate academic and exam-relevant vocabulary
4. **Grammar & Style**: Ensure proper grammar, sentence structure, and writing style
5. **Content Enrichment**: Add relevant examples, data, and insights where appropriate
6. **Exam-Specific Formatting**: Format according to competitive exam standards

**Enhancement Guidelines:**
- Maintain the original meaning and intent
- Improve clarity and coherence
- Use formal, academic language appropriate for competitive exams
- Maintain appropriate length {length_hint}
- Focus on {essay_desc}

**Response Format:**
Provide only the enhanced essay text in {target}. Do not include explanations or comments."""

    user_prompt = (
        f"Please enhance and translate this essay from {source} to {target}:\n\n"
        f"**Original Essay:**\n{essay_text}\n\n"
        f"**Requirements:**\n- Essay Type: {essay_desc}\n- Target Language: {target}\n"
    )
    if word_limit:
        user_prompt += f"- Word Limit: {word_limit} words\n"
    user_prompt += f"\nPlease provide the enhanced essay in {target} only."

    return await client.complete(
        [{"role": "system", "content": system_prompt}, {"role": "user", "content": user_prompt}],
        max_tokens=4000,
        temperature=0.5,
    )


# ---------------------------------------------------------------------------
# Mock evaluation
# ---------------------------------------------------------------------------

async def evaluate_mock_answer(
    client: AIClient,
    exam_type: str,
    language: str,
    question_type: str,
    subject: str,
    answer_text: str,
    word_limit: Optional[int] = None,
) -> str:
    """Score a practice answer against exam criteria; returns markdown feedback."""
    lang_name = language_name(language, language)
    exam_name = EXAM_NAMES.get(exam_type, "Competitive Exam")
    question_type_name = QUESTION_TYPES.get(question_type, "General Questions")

    system_prompt = f"""You are Indicore, an AI-powered mock evaluation specialist for {exam_name} and other competitive exams. You excel at evaluating answers written in {lang_name} for {question_type_name} questions.

**Evaluation Criteria:**
1. **Content Quality (30%)**: Accuracy, relevance, depth of knowledge, and factual correctness
2. **Structure & Organization (25%)**: Logical flow, clear introduction, body paragraphs, and conclusion
3. **Language & Expression (20%)**: Grammar, vocabulary, sentence structure, and clarity in {lang_name}
4. **Critical Analysis (15%)**: Analytical thinking, argumentation, and critical evaluation
5. **Presentation (10%)**: Formatting, neatness, and adherence to word limits

**Response Format:**
**📊 OVERALL SCORE: [X/100]**
**✅ STRENGTHS:** 3-5 specific strengths
**❌ AREAS FOR IMPROVEMENT:** 3-5 specific areas
**📝 DETAILED FEEDBACK:** content, structure, language and analysis
**💡 SPECIFIC RECOMMENDATIONS:** 5-7 actionable suggestions
**📚 STUDY TIPS:** 3-4 study strategies
**🎯 EXAM-SPECIFIC ADVICE:** {exam_name}-specific tips and time management

Be encouraging but honest, specific but constructive."""

    lines = [
        f'Please evaluate this {question_type_name} answer for {exam_name} in the subject "{subject}" written in {lang_name}:',
        "",
        "**Answer Text:**",
        answer_text,
        "",
        "**Evaluation Parameters:**",
        f"- Exam Type: {exam_name}",
        f"- Question Type: {question_type_name}",
        f"- Subject: {subject}",
        f"- Language: {lang_name}",
    ]
    if word_limit:
        lines.append(f"- Word Limit: {word_limit} words")
    lines.append(f"- Current Word Count: {count_words(answer_text)} words")
    lines.append("")
    lines.append("Please provide a detailed evaluation following the format specified in your system prompt.")

    return await client.complete(
        [{"role": "system", "content": system_prompt}, {"role": "user", "content": "\n".join(lines)}],
        max_tokens=4000,
        temperature=0.2,
    )


# ---------------------------------------------------------------------------
# Mains evaluation
# ---------------------------------------------------------------------------

MAINS_SYSTEM_PROMPT = """You are Indicore's AI Mains Evaluator, a specialist in UPSC Civil Services Mains evaluation.
Your goal is to provide deep, structural, and "value-addition" feedback on a candidate's answer.

EXAMINATION STANDARDS:
- Intro: Context, definition, or current relevance.
- Body: Multi-dimensional (PESTEL), use of subheadings, bullet points.
- Conclusion: Balanced, forward-looking (Way Forward), and optimistic.

EVALUATION PARAMETERS:
1. Structural Analysis
2. Value Addition: reports, Articles of Constitution, Case Laws
3. Visualization Potential: maps, flow charts, diagrams
4. Content Accuracy
5. Analytical Depth

RESPONSE FORMAT (JSON):
{
  "score": {"total": 0, "intro": 0, "body": 0, "conclusion": 0},
  "feedback": {"intro": "string", "body": "string", "conclusion": "string"},
  "valueAddition": {"dataPoints": [], "articles_cases": [], "keywords": []},
  "visualSuggestions": "string",
  "modelPoints": [],
  "overallComment": "summary"
}

Provide the response STRICTLY as a valid JSON object."""


async def evaluate_mains(
    client: AIClient,
    question: str,
    answer: str,
    subject: Optional[str] = None,
    language: str = "en",
) -> Dict[str, Any]:
    """
    Structured UPSC mains evaluation through OpenAI JSON mode.

    Raises:
        InvalidAIFormat: when the reply is not a JSON object
    """
    subject_line = f"Subject: {subject}\n" if subject else ""
    user_prompt = (
        subject_line
        + f"Language: {language_name(language)}\n\n"
        f"Question: {question}\n\n"
        f"Candidate's Answer:\n{answer}\n\n"
        "Evaluate this answer and provide the JSON feedback."
    )
    raw = await client.complete_openai(
        [{"role": "system", "content": MAINS_SYSTEM_PROMPT}, {"role": "user", "content": user_prompt}],
        temperature=0.2,
        json_mode=True,
    )
    try:
        evaluation = json.loads(strip_code_fences(raw))
    except (json.JSONDecodeError, ValueError) as exc:
        logger.error("Mains evaluation reply was not valid JSON: %.200s", raw)
        raise InvalidAIFormat(raw) from exc
    if not isinstance(evaluation, dict):
        raise InvalidAIFormat(raw)
    return evaluation
