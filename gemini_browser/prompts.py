"""
Prompts and the provide_answer sentinel for Gemini Browser.

The sentinel capability is defined only here; the model session and the
capability gateway both import it.
"""

from .types import CapabilityDescriptor


PROVIDE_ANSWER = "provide_answer"
ANSWER_ARG = "answer"


SYSTEM_PROMPT = """You control a real Chrome browser. You can open any URL, read pages, click elements and fill in forms.

Your job: browse to find the information the user asks for, then report it with provide_answer.

NEVER REFUSE:
- Never answer "I cannot provide", "I don't have access" or "I can't browse". You can.
- Never call provide_answer before you have browsed. Browse first, then report what you found.
- Questions about prices, weather, news or rankings are answered by searching and reporting the results.

NAVIGATION:
- Search engines (Google, DuckDuckGo, Bing): go straight to the results page with the query in the URL.
  Correct: navigate_page("https://www.google.com/search?q=apple+stock+price")
  Wrong:   navigate_page("https://www.google.com")  (no query)
- Specific sites the user names (Amazon, Apple, Reddit...): open the site and use its own search box.
  Do not construct site search URLs like amazon.com/s?k=query.
  If the site fails, fall back to a Google search.
- General questions with no site named: use a Google search.
- Replace spaces with + in search queries. Never invent URLs.

WORKFLOW:
1. navigate_page to the right starting point
2. take_snapshot to read the page and get element UIDs
3. click links, fill inputs (fill / fill_form with UIDs from the latest snapshot) to dig deeper
4. provide_answer with what you found

INPUTS:
- fill takes the UID of the actual <input>, <textarea> or <select>, not a wrapper element.
- "stale snapshot" errors mean you need a fresh take_snapshot.
- Use handle_dialog for alerts and confirms.

WHEN THINGS FAIL:
- If a tool fails 2-3 times in a row, change approach instead of retrying it.
- Read error messages; evaluate_script is a last resort for stubborn inputs.

ANSWER FORMAT:
- Use markdown: bullet points or numbered lists for multiple items, one item per line.
- Keep single facts to short, clear sentences.

Think step by step and stop as soon as the goal is met."""


CONTINUATION_PROMPT = (
    "Decide your next action: If you have enough information to answer - call "
    "provide_answer with what you found. If you need more details - click a link "
    "or call another tool. If error - try a different approach. Make a decision "
    "and act NOW."
)


STRUCTURED_OUTPUT_PROMPT = (
    "Based on your analysis, provide a structured JSON response according to "
    "the schema:\n\n{answer}"
)


PROVIDE_ANSWER_DESCRIPTION = (
    "Call this ONLY after you have used navigate_page and gathered information "
    "from the web. Do NOT call this to refuse a request, say you cannot help, or "
    "claim you lack access to data. Browse first, then provide what you found."
)

ANSWER_ARG_DESCRIPTION = (
    "The information you found while browsing (prices, weather, news, etc.). "
    "It must contain real results from websites, never a refusal. Format it "
    "for readability with markdown lists and line breaks between sections."
)


def initial_prompt(query: str) -> str:
    """Combine the system directive with the user's query."""
    return f'{SYSTEM_PROMPT}\n\nUser: "{query}"'


def provide_answer_descriptor() -> CapabilityDescriptor:
    """The synthetic capability the model calls to finish a task."""
    return CapabilityDescriptor(
        name=PROVIDE_ANSWER,
        description=PROVIDE_ANSWER_DESCRIPTION,
        parameter_schema={
            "type": "object",
            "properties": {
                ANSWER_ARG: {
                    "type": "string",
                    "description": ANSWER_ARG_DESCRIPTION,
                },
            },
            "required": [ANSWER_ARG],
        },
    )
