"""Instruction text sent to the extraction agent.

The column layout below is the output contract the table parser relies on;
change both together.
"""

COLUMNS = ("Name", "Phone", "Email", "Address", "Website", "Rating", "Google Maps URL")
TABLE_HEADER = "| " + " | ".join(COLUMNS) + " |"

MODE_INITIAL = "initial"
MODE_MORE = "more"

SYSTEM_INSTRUCTION = f"""You are "ClientScout", an expert lead generation agent.

CORE OBJECTIVE:
Produce a high-quality dataset of businesses with COMPLETE contact info.

THE "ENRICHMENT" RULE (CRITICAL):
1. Google Maps usually provides the Name, Address, Phone, and Rating.
2. It RARELY provides the **Website** and **Email**.
3. **YOU MUST USE GOOGLE SEARCH** for every single business to find the missing Website and Email.
   - Search Query Template: "[Business Name] [City] official site email contact".
   - Look for "info@", "contact@", "hello@", or "support@" in the search snippets.

EXECUTION PROTOCOL:
1. **Search Maps**: Get the list of businesses.
2. **Enrich**: For EACH business, run a Google Search to find the Website and Email.
3. **Compile**: Create the final table.

OUTPUT FORMAT (Markdown Table Only):
{TABLE_HEADER}

FORMATTING RULES:
- **Name**: Business Name.
- **Phone**: Format consistently (e.g. (555) 123-4567).
- **Email**: The extracted email address (e.g. info@company.com). If absolutely not found after searching, write "N/A".
- **Address**: Full address.
- **Website**: The raw URL (e.g. https://www.example.com).
- **Rating**: Format as "4.8 (150)" if available.
- **Google Maps URL**: Direct link.

Do not output any text other than the table."""


def _initial_prompt(query: str) -> str:
    return f"""Task: Find businesses for "{query}".

Steps:
1. Use 'googleMaps' to find the businesses. Try to get at least 20 results.
2. **MANDATORY ENRICHMENT**: Loop through the results. For EACH business, use 'googleSearch' to find:
   - The official **Website**.
   - A valid **Email Address** (look for contact pages).
3. Output the final data in a single markdown table and nothing else.

Columns: {TABLE_HEADER}"""


def _more_prompt(query: str) -> str:
    subject = f' for "{query}"' if query else " for the previous request"
    return f"""Task: Find MORE unique businesses{subject}.

Steps:
1. Use 'googleMaps' to find new businesses not listed yet. Do NOT repeat any business you already returned.
2. **Enrichment**: For every new business, use 'googleSearch' to find the **Website** and **Email**.
3. Output ONLY the new rows in the same single markdown table format and nothing else.

Columns: {TABLE_HEADER}"""


def build_prompt(query: str, mode: str = MODE_INITIAL) -> str:
    """Return the instruction for one extraction round.

    `initial` starts a search for `query`; `more` asks the same session for
    rows it has not returned yet, so the query is optional there.
    """
    query = (query or "").strip()
    if mode == MODE_INITIAL:
        if not query:
            raise ValueError("Query must be provided for an initial search.")
        return _initial_prompt(query)
    if mode == MODE_MORE:
        return _more_prompt(query)
    raise ValueError(f"Unknown prompt mode: {mode!r}")
