import logging

import requests
from groq import Groq, APIError as GroqAPIError
import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError
from google.generativeai.types import HarmCategory, HarmBlockThreshold # For Gemini safety settings

import config

logger = logging.getLogger(__name__)

PROVIDERS = ("GROQ", "GEMINI", "OPENROUTER", "OLLAMA")


class LLMError(Exception):
    """Calling the AI backend failed (transport, HTTP status or unexpected payload)."""


class LLMConfigurationError(LLMError):
    """The requested provider is unknown or has no API key."""


_groq_client = None
_gemini_models = {}


def _get_groq_client():
    global _groq_client
    if not config.GROQ_API_KEY:
        raise LLMConfigurationError("Groq client not initialized. Check GROQ_API_KEY.")
    if _groq_client is None:
        _groq_client = Groq(api_key=config.GROQ_API_KEY)
    return _groq_client


def _get_gemini_model():
    if not config.GOOGLE_API_KEY:
        raise LLMConfigurationError("Gemini model not initialized. Check GOOGLE_API_KEY.")
    model = _gemini_models.get(config.GEMINI_MODEL_NAME)
    if model is None:
        genai.configure(api_key=config.GOOGLE_API_KEY)
        model = genai.GenerativeModel(config.GEMINI_MODEL_NAME)
        _gemini_models[config.GEMINI_MODEL_NAME] = model
    return model


def available_providers():
    providers = []
    if config.GROQ_API_KEY:
        providers.append("GROQ")
    if config.GOOGLE_API_KEY:
        providers.append("GEMINI")
    if config.OPENROUTER_API_KEY:
        providers.append("OPENROUTER")
    # Ollama needs no key; it is usable whenever the server is running
    providers.append("OLLAMA")
    return providers


def flatten_messages(messages_list):
    """Fold a chat history into a single prompt string (system text first)."""
    system_parts = [m['content'] for m in messages_list if m['role'] == 'system']
    other_parts = [m['content'] for m in messages_list if m['role'] != 'system']
    return "\n\n".join(system_parts + other_parts)


# --- Providers ---

def _call_gemini(messages_list, response_format_type, temperature, max_tokens):
    model = _get_gemini_model()

    # Gemini's generate_content 'contents' parameter expects a list of parts.
    gemini_contents = []
    pending_system = []
    for msg in messages_list:
        if msg['role'] == 'system':
            pending_system.append(msg['content'])
        elif msg['role'] == 'user':
            content = msg['content']
            if pending_system:
                content = "\n\n".join(pending_system + [content])
                pending_system = []
            gemini_contents.append({"role": "user", "parts": [content]})
        elif msg['role'] == 'assistant':
            gemini_contents.append({"role": "model", "parts": [msg['content']]})
    if pending_system:
        gemini_contents.append({"role": "user", "parts": ["\n\n".join(pending_system)]})

    generation_config = {"temperature": temperature, "max_output_tokens": max_tokens}
    if response_format_type == "json_object":
        generation_config["response_mime_type"] = "application/json"

    response = model.generate_content(
        contents=gemini_contents,
        generation_config=generation_config,
        safety_settings={
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
        }
    )
    if not response.candidates:
        raise LLMError("AI response was blocked by Gemini's safety settings.")
    try:
        return response.text
    except ValueError as e:
        # candidate without text parts (finish_reason other than STOP)
        raise LLMError(f"Gemini returned no text: {e}") from e


def _call_groq(messages_list, response_format_type, temperature, max_tokens):
    client = _get_groq_client()
    groq_response_format = {"type": response_format_type} if response_format_type else None

    chat_completion = client.chat.completions.create(
        messages=messages_list,
        model=config.GROQ_MODEL_NAME,
        response_format=groq_response_format,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return chat_completion.choices[0].message.content


def _call_openrouter(messages_list, model=None):
    if not config.OPENROUTER_API_KEY:
        raise LLMConfigurationError("OpenRouter API key is not configured. Please set it in the .env file.")

    headers = {
        "Authorization": f"Bearer {config.OPENROUTER_API_KEY}",
        "Content-Type": "application/json",
    }
    if config.OPENROUTER_HTTP_REFERER:
        headers["HTTP-Referer"] = config.OPENROUTER_HTTP_REFERER
    if config.OPENROUTER_X_TITLE:
        headers["X-Title"] = config.OPENROUTER_X_TITLE

    payload = {
        "model": model or config.OPENROUTER_MODEL_NAME,
        "messages": [{"role": "user", "content": flatten_messages(messages_list)}],
    }

    try:
        response = requests.post(config.OPENROUTER_URL, headers=headers, json=payload,
                                 timeout=config.OPENROUTER_TIMEOUT)
    except requests.exceptions.RequestException as e:
        raise LLMError(f"Network error calling OpenRouter API: {e}") from e

    if response.status_code >= 400:
        raise LLMError(f"OpenRouter API request failed: {response.status_code}. Body: {response.text[:2000]}")

    try:
        data = response.json()
    except ValueError as e:
        raise LLMError(f"OpenRouter returned a non-JSON body: {response.text[:500]}") from e

    if data.get("error"):
        error = data["error"]
        message = error.get("message", "Unknown error from OpenRouter API.") if isinstance(error, dict) else str(error)
        code = f" (Code: {error['code']})" if isinstance(error, dict) and error.get("code") else ""
        raise LLMError(f"OpenRouter API Error: {message}{code}")

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not isinstance(content, str):
        raise LLMError("Failed to extract reply content from OpenRouter response.")
    return content


def _call_ollama(messages_list, temperature, max_tokens):
    system_prompt = "\n\n".join(m['content'] for m in messages_list if m['role'] == 'system')
    user_message = "\n\n".join(m['content'] for m in messages_list if m['role'] != 'system')
    prompt = f"{system_prompt}\n\nUser: {user_message}" if system_prompt else user_message

    url = f"{config.OLLAMA_BASE_URL.rstrip('/')}/api/generate"
    logger.debug(f"Calling Ollama at {url} with model {config.OLLAMA_MODEL_NAME}")
    payload = {
        "model": config.OLLAMA_MODEL_NAME,
        "prompt": prompt,
        "stream": False,
        "options": {
            "temperature": temperature,
            "num_predict": max_tokens,
        },
    }

    try:
        response = requests.post(url, json=payload, timeout=config.OLLAMA_TIMEOUT)
    except requests.exceptions.Timeout as e:
        raise LLMError(
            f"Timeout : l'IA a mis trop de temps à répondre (plus de {config.OLLAMA_TIMEOUT} secondes). "
            f"Le modèle {config.OLLAMA_MODEL_NAME} est peut-être trop lent, essayez un modèle plus petit."
        ) from e
    except requests.exceptions.RequestException as e:
        raise LLMError(
            f"Erreur de communication avec Ollama : {e}. Assurez-vous qu'Ollama est démarré "
            f"et que le modèle {config.OLLAMA_MODEL_NAME} est disponible."
        ) from e

    if response.status_code >= 400:
        raise LLMError(f"Ollama HTTP error {response.status_code}: {response.text[:2000]}")

    try:
        data = response.json()
    except ValueError as e:
        raise LLMError(f"Ollama returned a non-JSON body: {response.text[:500]}") from e
    logger.debug(f"Ollama reply length: {len(data.get('response') or '')}")
    return data.get("response") or "No response from AI"


# --- Helper function to make API calls to chosen provider ---
def call_llm(messages_list, provider=None, response_format_type=None, temperature=0.7, max_tokens=1024):
    provider = (provider or config.DEFAULT_LLM_PROVIDER).upper()
    logger.debug(f"Calling {provider} with {len(messages_list)} message(s)")

    if provider == 'GEMINI':
        try:
            return _call_gemini(messages_list, response_format_type, temperature, max_tokens)
        except GoogleAPIError as e:
            raise LLMError(f"Gemini API error: {e}") from e
    elif provider == 'GROQ':
        try:
            return _call_groq(messages_list, response_format_type, temperature, max_tokens)
        except GroqAPIError as e:
            raise LLMError(f"Groq API error: {e}") from e
    elif provider == 'OPENROUTER':
        return _call_openrouter(messages_list)
    elif provider == 'OLLAMA':
        return _call_ollama(messages_list, temperature, max_tokens)
    else:
        raise LLMConfigurationError(f"Unknown LLM provider: {provider}")
