"""
Prompt templates for the language model oracle.

Templates are filled with ``str.format``; literal braces are doubled.
"""

# Action proposal: instruction + page snapshot -> browser/memory actions
ACTION_PROPOSAL_PROMPT = """You are a QA automation agent executing web UI tests.

CURRENT PAGE STATE:
{page_text}

EXECUTION HISTORY:
{history}

TEST INSTRUCTION:
{instruction}

AVAILABLE ACTIONS:
- {{"type": "click", "element": "description", "ref": "element-ref"}}: click an element
- {{"type": "fill", "element": "description", "ref": "element-ref", "value": "text"}}: type into a field
- {{"type": "fill", "element": "description", "ref": "element-ref", "memoryKey": "key-name"}}: type a value read from memory
- {{"type": "navigate", "url": "https://..."}}: open a URL
- {{"type": "memory_store", "key": "variable-name", "value": "any-value", "element": "what the value is"}}: remember a value for later steps
- {{"type": "memory_read", "key": "variable-name"}}: read a remembered value

CURRENT MEMORY STATE:
{memory}

YOUR TASK:
Analyze the page state and decide which actions carry out the instruction.
Use memory_store for anything later steps need (credentials, generated IDs, order numbers).
To type a remembered value, use "memoryKey" instead of "value".

RULES:
- Click and fill actions need both "element" (the visible text or label, as a user would describe it) and "ref" (copied exactly from the snapshot)
- Only use refs that appear in the current page state
- When storing a value shown on the page, copy it exactly as displayed

Respond with valid JSON only, in the form {{"actions": [...]}}."""


# Verification patterns: expected-result sentence -> regexes checked locally
VERIFICATION_PATTERN_PROMPT = """You are a QA automation agent. Given an expected result description, provide regex patterns to verify it.

EXPECTED RESULT:
{expected}

CURRENT MEMORY STATE (for reference):
{memory}

YOUR TASK:
Provide regex patterns that are tested against the page's text content (case-insensitive).

Return a JSON object with:
- "match": patterns that SHOULD be found; at least one must match
- "notMatch": patterns that must NOT be found; any hit fails the check. Use these for things that should have disappeared
- "memoryChecks" (optional): list of {{"key": "...", "pattern": "...", "shouldExist": true}}. shouldExist defaults to true; false means the key must be absent

EXAMPLES:
1. Expected: "user is logged in" -> {{"match": ["welcome", "dashboard", "logout"], "notMatch": ["login.*form", "sign.*in"]}}
2. Expected: "error message disappeared" -> {{"match": [], "notMatch": ["error", "invalid", "failed"]}}
3. Expected: "form submitted successfully" -> {{"match": ["success", "thank.*you", "submitted"], "notMatch": ["error", "required.*field"]}}

GUIDELINES:
- Keep patterns short and flexible
- For "notMatch", think about what must not be visible if the expected result holds
- Empty lists are valid

Respond with valid JSON only."""


# Value extraction during replay: hint + page text -> bare value
VALUE_EXTRACTION_PROMPT = """Extract the following value from this page content. Return ONLY the value, nothing else.

VALUE TO EXTRACT: {hint}

PAGE CONTENT:
{page_text}

Return only the extracted value as plain text."""
