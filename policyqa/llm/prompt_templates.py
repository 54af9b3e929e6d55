"""
Prompt Templates for PolicyQA

Formats fused policy chunks into a labeled context block and pairs it with
a system instruction that keeps the model to that context.
"""

from policyqa.rag.retriever import RetrievedChunk

NOT_FOUND_ANSWER = (
    "I couldn't find any relevant policy information to answer that question."
)
NO_ANSWER_GENERATED = "No answer generated."


def format_chunk_header(position: int, chunk: RetrievedChunk) -> str:
    """Label line for one chunk, e.g. ``Chunk 1 (Document: X, Status: y, ...)``."""
    parts = [f"Document: {chunk.document_title}"]
    if chunk.section_title:
        parts.append(f"Section: {chunk.section_title}")
    parts.append(f"Status: {chunk.document_status}")
    similarity = (
        f"{chunk.similarity:.3f}" if chunk.similarity is not None else "N/A"
    )
    parts.append(f"Similarity: {similarity}")
    return f"Chunk {position} ({', '.join(parts)}):"


def format_context(chunks: list[RetrievedChunk]) -> str:
    """Format chunks in fused order, separated by blank lines."""
    blocks = [
        f"{format_chunk_header(i, chunk)}\n---\n{chunk.chunk_text}\n---"
        for i, chunk in enumerate(chunks, 1)
    ]
    return "\n\n".join(blocks)


class PromptTemplate:
    """Builds chat messages for policy question answering."""

    SYSTEM_PROMPT = """You are a policy assistant for an organisation's staff. Answer questions using ONLY the policy context provided by the user message.

Rules:
- If the context does not contain the answer, say clearly that the policies provided do not cover it. Do not guess or use outside knowledge.
- Begin the answer by naming the source policy document and, when known, its section (for example: "According to the Leave Policy, Section 3: Sick Leave, ...").
- When the answer has several points, steps, or conditions, use structured markdown (headings, bullet or numbered lists).
- Never mention chunk numbers, similarity scores, or any other internal retrieval details."""

    USER_TEMPLATE = """Policy context:

{context}

Question: {question}"""

    def build_messages(
        self, question: str, chunks: list[RetrievedChunk]
    ) -> list[dict[str, str]]:
        """
        Build the system and user messages for a chat completion.

        Args:
            question: The user's policy question.
            chunks: Fused chunks, best first.

        Returns:
            OpenAI-style message list.
        """
        context = format_context(chunks)
        return [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {
                "role": "user",
                "content": self.USER_TEMPLATE.format(
                    context=context, question=question
                ),
            },
        ]
