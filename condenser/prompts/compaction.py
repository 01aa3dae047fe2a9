"""Prompts and markers for conversation compaction."""

SUMMARY_MARKER = "[Previous conversation summary]"

CONTINUE_INSTRUCTION = "Please continue from where we left off."

ACKNOWLEDGMENT = "I understand the previous context. Continuing with the task."

EARLIER_CONTEXT_DIVIDER = "\n\n---\nEarlier context (condensed):\n"

COMPACTION_SYSTEM_PROMPT = (
    "You are an expert at creating detailed technical summaries that preserve "
    "all essential context for software development work."
)

COMPACTION_PROMPT = """Your task is to create a detailed summary of the conversation so far, paying close attention to the user's explicit requests and your previous actions.
This summary should be thorough in capturing technical details, code patterns, and architectural decisions that would be essential for continuing development work without losing context.

The conversation you receive is a partial history: the most recent messages are NOT included here (they are retained separately in their original form). If it contains a previous summary, merge its facts into your new summary instead of summarizing the summary; newer messages take precedence over it.

Before providing your final summary, wrap your analysis in <analysis> tags to organize your thoughts and ensure you've covered all necessary points.

Your summary should include the following sections:

1. Primary Request and Intent: Capture all of the user's explicit requests and intents in detail
2. Key Technical Concepts: List all important technical concepts, technologies, and frameworks discussed.
3. Files and Code Sections: Enumerate specific files and code sections examined, modified, or created. Pay special attention to the most recent messages and include full code snippets where applicable.
4. Errors and fixes: List all errors that you ran into, and how you fixed them. Pay special attention to specific user feedback.
5. Problem Solving: Document problems solved and any ongoing troubleshooting efforts.
6. All user messages: List ALL user messages that are not tool results. These are critical for understanding the users' feedback and changing intent.
7. Pending Tasks: Outline any pending tasks that you have explicitly been asked to work on.
8. Current Work: Describe in detail precisely what was being worked on immediately before this summary request.

Please be comprehensive and technical in your summary. Include specific file paths, function names, error messages, and code patterns that would be essential for maintaining context."""

COMPACTION_REQUEST = """{prompt}

CONVERSATION HISTORY TO SUMMARIZE:
{transcript}

Please provide a comprehensive structured summary following the 8-section format above."""
