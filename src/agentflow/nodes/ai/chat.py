"""
Chat Nodes - Nodes that talk to a chat-completion model.

These nodes use the AI client on the execution context; prompts are
rendered against the node's template context before they are sent.
"""

from __future__ import annotations

import asyncio
from typing import Any

from agentflow.core.data_types import VariableType, stringify
from agentflow.core.node_types import (
    NodeType,
    NodeCategory,
    InputDefinition,
    OutputDefinition,
    ParameterDefinition,
    NodeRegistry,
    register_node,
    required_input,
)
from agentflow.providers.base import ChatMessage, ChatRequest


ANALYSIS_INSTRUCTIONS = {
    "sentiment": "Analyze the sentiment of the following text. "
                 "Answer with positive, negative or neutral and a one-sentence reason.",
    "summary": "Summarize the following text in a few sentences.",
    "keywords": "List the most important keywords of the following text, one per line.",
}


def _model_parameters() -> list[ParameterDefinition]:
    return [
        ParameterDefinition.text(
            name="model",
            label="Model",
            default="",
            description="Model name; empty uses the client default",
        ),
        ParameterDefinition.float_param(
            name="temperature",
            label="Temperature",
            default=0.7,
            min_value=0.0,
            max_value=2.0,
        ),
        ParameterDefinition.integer(
            name="maxTokens",
            label="Max Tokens",
            default=2048,
            min_value=1,
            max_value=128000,
        ),
        ParameterDefinition.integer(
            name="timeout",
            label="Timeout (s)",
            default=0,
            min_value=0,
            description="Abort the request after this many seconds (0 = no limit)",
        ),
    ]


async def with_timeout(coro, parameters: dict[str, Any]):
    """Await a client call, bounded by the node's timeout parameter."""
    timeout = parameters.get("timeout") or 0
    if timeout and float(timeout) > 0:
        return await asyncio.wait_for(coro, float(timeout))
    return await coro


async def complete(
    context: Any,
    parameters: dict[str, Any],
    messages: list[ChatMessage],
) -> str:
    """Send messages through the context's AI client and return the reply."""
    client = context.get_ai_client()
    request = ChatRequest(
        messages=messages,
        model=parameters.get("model") or None,
        temperature=float(parameters.get("temperature", 0.7)),
        max_tokens=int(parameters.get("maxTokens", 2048)),
    )
    result = await with_timeout(client.chat(request), parameters)
    return result.content


def _system(parameters: dict[str, Any]) -> list[ChatMessage]:
    system_prompt = stringify(parameters.get("systemPrompt")).strip()
    return [ChatMessage("system", system_prompt)] if system_prompt else []


# --- ai-chat ---

async def chat_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Execute a single-turn chat completion."""
    prompt = context.render(stringify(inputs.get("prompt")))
    if not prompt.strip():
        raise ValueError("Prompt is empty")
    messages = _system(parameters) + [ChatMessage("user", prompt)]
    return {"response": await complete(context, parameters, messages)}


CHAT_NODE = NodeType(
    id="ai-chat",
    name="AI Chat",
    description="Send a prompt to a chat model and output its reply",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="prompt", label="Prompt", description="Message sent to the model"),
    ],
    outputs=[
        OutputDefinition(name="response", label="Response", value_type=VariableType.STRING),
    ],
    parameters=[
        ParameterDefinition.text(
            name="prompt",
            label="Prompt",
            default="",
            multiline=True,
            description="Used when the prompt input is not bound",
        ),
        ParameterDefinition.text(name="systemPrompt", label="System Prompt", default="", multiline=True),
        *_model_parameters(),
    ],
    executor=chat_executor,
    validator=required_input("prompt"),
)


# --- ai-text-generation ---

async def text_generation_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Generate text about a topic."""
    topic = context.render(stringify(inputs.get("topic")))
    if not topic.strip():
        raise ValueError("Topic is empty")
    instruction = stringify(parameters.get("instruction")).strip()
    style = stringify(parameters.get("style")).strip()
    prompt = f"{instruction}\n\n{topic}" if instruction else topic
    if style:
        prompt += f"\n\nWrite in a {style} style."
    messages = _system(parameters) + [ChatMessage("user", prompt)]
    return {"text": await complete(context, parameters, messages)}


TEXT_GENERATION_NODE = NodeType(
    id="ai-text-generation",
    name="Text Generation",
    description="Write a piece of text about a topic",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="topic", label="Topic"),
    ],
    outputs=[
        OutputDefinition(name="text", label="Text", value_type=VariableType.LARGE_TEXT),
    ],
    parameters=[
        ParameterDefinition.text(name="topic", label="Topic", default=""),
        ParameterDefinition.text(
            name="instruction",
            label="Instruction",
            default="Write a detailed piece of text about the following topic:",
            multiline=True,
        ),
        ParameterDefinition.text(name="style", label="Style", default=""),
        ParameterDefinition.text(name="systemPrompt", label="System Prompt", default="", multiline=True),
        *_model_parameters(),
    ],
    executor=text_generation_executor,
    validator=required_input("topic"),
)


# --- ai-text-analysis ---

async def text_analysis_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """Run a sentiment, summary or keyword analysis on a text."""
    text = context.render(stringify(inputs.get("text")))
    if not text.strip():
        raise ValueError("Text is empty")
    analysis_type = parameters.get("analysisType", "summary")
    instruction = ANALYSIS_INSTRUCTIONS.get(analysis_type)
    if instruction is None:
        raise ValueError(f"Unknown analysis type: {analysis_type}")
    messages = [ChatMessage("system", instruction), ChatMessage("user", text)]
    return {"analysis": await complete(context, parameters, messages)}


TEXT_ANALYSIS_NODE = NodeType(
    id="ai-text-analysis",
    name="Text Analysis",
    description="Analyze sentiment, summarize or extract keywords",
    category=NodeCategory.AI,
    inputs=[
        InputDefinition(name="text", label="Text"),
    ],
    outputs=[
        OutputDefinition(name="analysis", label="Analysis", value_type=VariableType.STRING),
    ],
    parameters=[
        ParameterDefinition.text(name="text", label="Text", default="", multiline=True),
        ParameterDefinition.enum(
            name="analysisType",
            label="Analysis",
            options=[
                ("summary", "Summary"),
                ("sentiment", "Sentiment"),
                ("keywords", "Keywords"),
            ],
            default="summary",
        ),
        *_model_parameters(),
    ],
    executor=text_analysis_executor,
    validator=required_input("text"),
)


# --- ai-chat-window ---

async def chat_window_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> dict[str, Any]:
    """
    Execute one turn of an ongoing conversation.

    In manual input mode the incoming prompt is staged and the node waits
    until the user resumes it with the message to send (None sends the
    staged prompt unchanged). In manual output mode the reply is staged
    the same way before it is released downstream.
    """
    staged = context.render(stringify(inputs.get("prompt")))
    if parameters.get("inputMode", "manual") == "manual":
        sent = await context.wait_for_input(staged)
        message = staged if sent is None else stringify(sent)
    else:
        message = staged
    if not message.strip():
        raise ValueError("Message is empty")

    conversation = list(context.node.outputs.get("conversation") or [])
    if not parameters.get("keepHistory", True):
        conversation = []

    messages = _system(parameters)
    extra = stringify(inputs.get("context")).strip()
    if extra:
        messages.append(ChatMessage("system", f"Context:\n{extra}"))
    messages += [ChatMessage(turn["role"], turn["content"]) for turn in conversation]
    messages.append(ChatMessage("user", message))

    response = await complete(context, parameters, messages)
    if parameters.get("outputMode", "auto") == "manual":
        edited = await context.wait_for_input(response)
        if edited is not None:
            response = stringify(edited)

    conversation += [
        {"role": "user", "content": message},
        {"role": "assistant", "content": response},
    ]
    return {"response": response, "conversation": conversation}


CHAT_WINDOW_NODE = NodeType(
    id="ai-chat-window",
    name="Chat Window",
    description="Interactive multi-turn conversation with a chat model",
    category=NodeCategory.INTERACTIVE,
    inputs=[
        InputDefinition(name="prompt", label="Prompt"),
        InputDefinition(name="context", label="Context", description="Extra system context"),
    ],
    outputs=[
        OutputDefinition(name="response", label="Response", value_type=VariableType.STRING),
        OutputDefinition(name="conversation", label="Conversation", value_type=VariableType.ARRAY),
    ],
    parameters=[
        ParameterDefinition.enum(
            name="inputMode",
            label="Input Mode",
            options=[("manual", "Manual"), ("stream", "Stream")],
            default="manual",
        ),
        ParameterDefinition.enum(
            name="outputMode",
            label="Output Mode",
            options=[("auto", "Automatic"), ("manual", "Manual")],
            default="auto",
        ),
        ParameterDefinition.boolean(name="keepHistory", label="Keep History", default=True),
        ParameterDefinition.text(name="systemPrompt", label="System Prompt", default="", multiline=True),
        *_model_parameters(),
    ],
    executor=chat_window_executor,
)


def register_chat_nodes(registry: NodeRegistry | None = None) -> None:
    """Register all chat node types."""
    for node_type in (CHAT_NODE, TEXT_GENERATION_NODE, TEXT_ANALYSIS_NODE, CHAT_WINDOW_NODE):
        register_node(node_type, registry)
