"""
SupportDesk - Prompt Templates & Escalation Constants
======================================================
Centralised prompt management for the chat pipeline.  All prompt text
lives here so it can be versioned and reviewed independently of the
application logic.

The confidence annotation (``{"confidence": 0.85}``) requested at the end
of every prompt is the contract with the generation backend; the
parsing side lives in ``supportdesk.src.core.response_parser``.

Exports
-------
SYSTEM_PROMPT, CHAT_PROMPT_TEMPLATE, NO_HISTORY_PLACEHOLDER,
NO_FAQ_PLACEHOLDER, ESCALATION_KEYWORDS.
"""

# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════

SYSTEM_PROMPT: str = """You are a helpful and accurate customer support assistant. Your goal is to provide precise, helpful answers based on the FAQ knowledge base provided to you.

Guidelines:
1. Use the FAQ excerpts provided to answer questions accurately
2. Be concise but thorough in your responses
3. Use simple, clean formatting without excessive asterisks or markdown
4. Use bullet points (•) for lists, not asterisks (*)
5. Use numbered lists (1. 2. 3.) for steps, not bold formatting
6. If you're unsure or the question is outside your knowledge base, say you'll escalate to a human agent
7. Always be polite and professional
8. After your response, include ONLY a confidence score in JSON format
9. Do not use bold (**text**) or italic (*text*) formatting
10. Keep responses clean and readable

Format your response as plain text with simple formatting:
[Your helpful answer here]

{"confidence": 0.85}"""


# ══════════════════════════════════════════════════════════════════════
#  CHAT PROMPT TEMPLATE
# ══════════════════════════════════════════════════════════════════════
# Section order is fixed: history → FAQ context → current message.

CHAT_PROMPT_TEMPLATE: str = """{system_prompt}

CONVERSATION HISTORY:
{history}

RELEVANT FAQ EXCERPTS:
{faq_context}

CURRENT USER MESSAGE: {message}

Please provide your response followed by a confidence score in JSON format, e.g. {{"confidence": 0.85}}."""


# ══════════════════════════════════════════════════════════════════════
#  EMPTY-SECTION PLACEHOLDERS
# ══════════════════════════════════════════════════════════════════════

NO_HISTORY_PLACEHOLDER: str = "No previous messages"

NO_FAQ_PLACEHOLDER: str = "No relevant FAQs found"


# ══════════════════════════════════════════════════════════════════════
#  ESCALATION: high-stakes keywords
# ══════════════════════════════════════════════════════════════════════
# Matched as lowercase substrings of the user message.

ESCALATION_KEYWORDS: tuple[str, ...] = (
    "refund",
    "fraud",
    "legal",
    "lawsuit",
    "speak to human",
    "talk to person",
    "manager",
    "escalate",
    "complaint",
    "angry",
    "unacceptable",
)
