"""Prompt templates for the AI reasoning service."""

import json
from typing import List

from tomanage.engine.context import format_user_profile_for_prompt
from tomanage.models.preferences import UserProfile
from tomanage.models.task import Task

INFERENCE_RULES = """# INFERENCE RULES
- Priority HIGH: urgent, ASAP, critical, deadline, interview
- Priority MEDIUM: should, need to, moderate timeline
- Priority LOW: maybe, sometime, when I can

- Energy HIGH: implement, build, design, architecture, refactor, complex
- Energy MEDIUM: review, update, write, plan, organize
- Energy LOW: read, check, schedule, quick, simple

- Category work: coding, PR, work
- Category interview: interview, leetcode, DSA, system design
- Category personal: home, family, errands, shopping
- Category learning: learn, study, course, research"""

RECOMMENDATION_PROMPT_TEMPLATE = """You are my personal AI productivity assistant with deep knowledge of my work patterns.

IMPORTANT: You have access to tools to save and retrieve patterns about me. Use them!
- Use get_user_profile() to see my full profile
- Use get_pattern(pattern_type) to check what you know about me
- Use save_pattern(pattern_type, data) when you learn new patterns

{profile}

# MY TASKS
{tasks}

# RECOMMENDATION METHOD: {method}
{selection_note}

Based on ALL context above, recommend ONE task I should work on RIGHT NOW.

Format your response as:

**RECOMMENDED: [Task Title]**

**WHY THIS TASK RIGHT NOW:**
[2-3 sentences with specific reasoning based on my patterns]

**EXECUTION STRATEGY:**
- Estimated time: [X] minutes
- Energy approach: [specific guidance]
- Potential obstacles: [what might derail me]

**ALTERNATIVES:**
1. [Next best option]
2. [Quick win option]

**STRATEGIC NOTE:**
[Brief insight about patterns or productivity - be specific to me]"""

EXTRACTION_PROMPT = """Extract todos from the input. Analyze the text/image and infer as much as possible.

Return ONLY a JSON array of todos. Each todo should have:
{{
  "title": "Clear, actionable title starting with verb",
  "description": "Additional context from message",
  "priority": "high|medium|low",
  "category": "work|personal|interview|learning",
  "energy_required": "high|medium|low",
  "estimated_duration": number of minutes,
  "context_type": "frontend|backend|interview|meeting|review|planning|learning|admin",
  "tags": ["auto", "generated", "tags"],
  "due_date": "ISO date if mentioned, null otherwise"
}}

{rules}

Return ONLY the JSON array, no markdown, no explanation.""".format(rules=INFERENCE_RULES)

CONVERSATIONAL_PROMPT_TEMPLATE = """You are an intelligent task assistant that creates well-structured todos from conversation.

IMPORTANT: Use get_user_profile() to understand my work context.

{profile}

# YOUR ROLE
1. Extract task information from messages
2. Infer reasonable defaults when information is missing
3. Ask clarifying questions ONLY when truly ambiguous
4. Be conversational, not robotic

{rules}

# ONLY Ask When:
1. Priority is genuinely unclear
2. Task is vague and you can't infer clear action
3. Multiple interpretations exist

# DO NOT Ask About:
- Duration (infer or omit)
- Category if context is clear
- Energy level (always infer)
- Tags (auto-generate)"""


def _tasks_json(tasks: List[Task]) -> str:
    return json.dumps([task.model_dump(mode="json") for task in tasks], indent=2)


def build_recommendation_prompt(
    profile: UserProfile,
    tasks: List[Task],
    method: str,
    selection_note: str = "",
) -> str:
    """Prompt asking the model to pick one task, with the local pick as a hint."""
    return RECOMMENDATION_PROMPT_TEMPLATE.format(
        profile=format_user_profile_for_prompt(profile),
        tasks=_tasks_json(tasks),
        method=method,
        selection_note=selection_note,
    )


def build_extraction_prompt() -> str:
    return EXTRACTION_PROMPT


def build_conversational_prompt(profile: UserProfile) -> str:
    return CONVERSATIONAL_PROMPT_TEMPLATE.format(
        profile=format_user_profile_for_prompt(profile),
        rules=INFERENCE_RULES,
    )
