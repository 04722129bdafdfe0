"""
Centralized configuration
"""
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Setup debug logger for configuration
_config_logger = logging.getLogger('config')

_env_file = Path.cwd() / '.env'
_dotenv_result = load_dotenv(_env_file)

# Translation backend selection: SILICONFLOW, DEEPSEEK, GOOGLE or SIMULATE
TRANSLATOR_API = os.getenv('TRANSLATOR_API', 'SIMULATE').upper()

# SiliconFlow (OpenAI-compatible chat completions)
SILICONFLOW_API_KEY = os.getenv('SILICONFLOW_API_KEY', '')
SILICONFLOW_API_URL = os.getenv('SILICONFLOW_API_URL', 'https://api.siliconflow.cn/v1/chat/completions')
SILICONFLOW_MODEL = os.getenv('SILICONFLOW_MODEL', 'deepseek-ai/DeepSeek-V3')

# DeepSeek (OpenAI-compatible chat completions)
DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
DEEPSEEK_API_URL = os.getenv('DEEPSEEK_API_URL', 'https://api.deepseek.com/chat/completions')
DEEPSEEK_MODEL = os.getenv('DEEPSEEK_MODEL', 'deepseek-chat')

# Google free translation endpoint
GOOGLE_TRANSLATE_URL = os.getenv('GOOGLE_TRANSLATE_URL', 'https://translate.googleapis.com/translate_a/single')
GOOGLE_MAX_LENGTH = int(os.getenv('GOOGLE_MAX_LENGTH', '5000'))
GOOGLE_GET_LIMIT = 1800  # Longer queries are sent as POST form data

TARGET_LANGUAGE_CODE = os.getenv('TARGET_LANGUAGE_CODE', 'zh-CN')

# Chat completion request shape
TRANSLATION_SYSTEM_PROMPT = (
    "你是一个专业的翻译助手，请将提供的英文内容翻译成流畅自然的中文。"
    "只返回翻译结果，不要添加任何解释或额外内容。"
)
TRANSLATION_TEMPERATURE = float(os.getenv('TRANSLATION_TEMPERATURE', '0.3'))
TRANSLATION_MAX_TOKENS = int(os.getenv('TRANSLATION_MAX_TOKENS', '4000'))

# Request limits and pacing (delays are in seconds)
MAX_TRANSLATE_LENGTH = int(os.getenv('MAX_TRANSLATE_LENGTH', '3000'))
MAX_SEGMENT_CHARS = int(os.getenv('MAX_SEGMENT_CHARS', '3000'))
MIN_TRANSLATABLE_LENGTH = int(os.getenv('MIN_TRANSLATABLE_LENGTH', '5'))
TRANSLATE_DELAY = float(os.getenv('TRANSLATE_DELAY', '3.0'))
INDIVIDUAL_TRANSLATE_DELAY = float(os.getenv('INDIVIDUAL_TRANSLATE_DELAY', '1.0'))
REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '60'))

# Retry policy for rate limits and network failures
MAX_RETRY_ATTEMPTS = int(os.getenv('MAX_RETRY_ATTEMPTS', '5'))
RETRY_DELAY_BASE = float(os.getenv('RETRY_DELAY_BASE', '5.0'))
RETRY_MAX_DELAY = float(os.getenv('RETRY_MAX_DELAY', '120.0'))

# Storage
DATA_DIR = os.getenv('DATA_DIR', 'data')
CHECKPOINT_DIR = os.getenv('CHECKPOINT_DIR', os.path.join(DATA_DIR, 'checkpoints'))
UPLOAD_DIR = os.getenv('UPLOAD_DIR', os.path.join(DATA_DIR, 'uploads'))
OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'translated_files')
JOB_RETENTION_HOURS = float(os.getenv('JOB_RETENTION_HOURS', '24'))

# PDF rendering through headless Chrome
CHROME_PATH = os.getenv('CHROME_PATH', '')
PDF_RENDER_TIMEOUT = int(os.getenv('PDF_RENDER_TIMEOUT', '300'))

# Server configuration
HOST = os.getenv('HOST', '127.0.0.1')
PORT = int(os.getenv('PORT', '5000'))

DEBUG_MODE = os.getenv('DEBUG_MODE', 'false').lower() == 'true'

if DEBUG_MODE:
    _config_logger.setLevel(logging.DEBUG)
    _config_logger.debug("=" * 60)
    _config_logger.debug(f"Loaded .env from {_env_file.absolute()}: {_dotenv_result}")
    _config_logger.debug(f"   TRANSLATOR_API: {TRANSLATOR_API}")
    _config_logger.debug(f"   SILICONFLOW_API_URL: {SILICONFLOW_API_URL}")
    _config_logger.debug(f"   SILICONFLOW_API_KEY: {'***' + SILICONFLOW_API_KEY[-4:] if SILICONFLOW_API_KEY else '(not set)'}")
    _config_logger.debug(f"   DEEPSEEK_API_URL: {DEEPSEEK_API_URL}")
    _config_logger.debug(f"   DEEPSEEK_API_KEY: {'***' + DEEPSEEK_API_KEY[-4:] if DEEPSEEK_API_KEY else '(not set)'}")
    _config_logger.debug(f"   MAX_TRANSLATE_LENGTH: {MAX_TRANSLATE_LENGTH}")
    _config_logger.debug(f"   MAX_SEGMENT_CHARS: {MAX_SEGMENT_CHARS}")
    _config_logger.debug(f"   CHECKPOINT_DIR: {CHECKPOINT_DIR}")
    _config_logger.debug(f"   OUTPUT_DIR: {OUTPUT_DIR}")
    _config_logger.debug("=" * 60)

# XML namespaces for EPUB parsing
NAMESPACES = {
    'opf': 'http://www.idpf.org/2007/opf',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'xhtml': 'http://www.w3.org/1999/xhtml',
    'epub': 'http://www.idpf.org/2007/ops',
    'ncx': 'http://www.daisy.org/z3986/2005/ncx/',
    'container': 'urn:oasis:names:tc:opendocument:xmlns:container',
}

# Sentence terminators used by the segmenter
SENTENCE_TERMINATORS = ['.', '!', '?', '。', '！', '？']
