"""Prompt templates for the inference collaborator.

Prompts are versioned to support cache invalidation.
"""

from __future__ import annotations

from dataclasses import dataclass

# Prompt version for cache invalidation
# v1.1: Account prompt lists account names next to numbers
# v1.2: Page prompt asks for the page text
PROMPT_VERSION = "v1.2"


@dataclass
class PageBoundaryPrompt:
    """Prompt for classifying one page image of a multi-page upload.

    The page image itself travels in the message `images` field.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """You are a document analysis assistant for a bookkeeping system.
You look at one page of a scanned PDF that may contain several financial documents
(invoices, receipts, credit notes, bank statements) and decide whether the page
starts a new document or continues the previous one.

Signs of a NEW document:
- New company name or logo at the top
- New invoice number
- New date
- New supplier
- A clear heading (INVOICE, RECEIPT, FAKTURA, KVITTO, etc.)

Signs of a CONTINUATION:
- "Page 2 of 3" / "Sida 2 av 3" or similar
- Continued line items
- Same supplier and layout
- No new heading

Respond in JSON format:
{
    "is_new_document": true,
    "document_type": "invoice" | "receipt" | "credit_note" | "bank_statement" | "other",
    "reasoning": "Brief explanation",
    "confidence": 0.85,
    "text": "The text printed on the page, or null if illegible"
}"""

    user_template: str = """Analyze this page (page {page_number}) of a PDF.

{context}

Decide whether this page starts a NEW document and which type of document it is.
Provide your answer in JSON format."""

    def format_user_message(self, page_number: int, previous_type: str | None) -> str:
        """Format the user message for one page.

        Args:
            page_number: 1-based page number.
            previous_type: Document type of the document the previous page belongs to.
        """
        if previous_type:
            context = f"The previous document was a {previous_type}."
        else:
            context = "This is the first page."
        return self.user_template.format(page_number=page_number, context=context)


@dataclass
class AccountPrompt:
    """Prompt for suggesting a BAS expense account for a transaction."""

    version: str = PROMPT_VERSION

    system_prompt: str = """You are a Swedish bookkeeping expert.
Your task is to suggest the most appropriate BAS account for a purchase transaction.

Rules:
1. Prefer an account from the provided list of common expense accounts
2. If uncertain, suggest the most general applicable account
3. Provide a brief reason for your choice
4. Include a confidence score from 0.0 to 1.0

Respond in JSON format:
{
    "account": "XXXX",
    "account_name": "Account name",
    "confidence": 0.7,
    "reasoning": "Brief explanation"
}"""

    user_template: str = """Suggest an account for this transaction:

Transaction Details:
- Supplier: {supplier}
- Description: {description}
- Amount: {amount} SEK

Common expense accounts:
{accounts}

Provide your suggestion in JSON format."""

    def format_user_message(
        self,
        supplier: str,
        description: str | None,
        amount: float,
        accounts: str,
    ) -> str:
        """Format the user message with transaction details."""
        return self.user_template.format(
            supplier=supplier or "Unknown",
            description=description or "No description",
            amount=f"{amount:.2f}",
            accounts=accounts,
        )
