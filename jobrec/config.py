"""
Configuration management for JobRec.

This module provides configuration management including:
- .env file support for environment variables
- Settings persistence and validation
- Default values and type checking
- CLI integration for config management
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv, set_key, unset_key
from rich.console import Console
from rich.table import Table


class ConfigManager:
    """Manages JobRec configuration settings and .env files."""

    # Default configuration values
    DEFAULT_CONFIG = {
        # Ollama settings (embedding function)
        "ollama": {
            "host": "localhost",
            "port": 11434,
            "model": "all-minilm",
            "timeout": 30,
            "max_retries": 3
        },

        # Zero-shot classifier settings
        "classifier": {
            "model": "facebook/bart-large-mnli",
            "token": "",
            "timeout": 30,
            "max_workers": 1
        },

        # Vector store settings
        "vector_store": {
            "path": "data/jobrec.db",
            "collection": "job_collection",
            "metric": "cosine"
        },

        # Posting source settings
        "corpus": {
            "postings_path": "data/job_postings.json"
        },

        # Matching settings
        "matching": {
            "query_top_k": 3,
            "resume_top_k": 5,
            "overfetch_factor": 4,
            "score_precision": 3
        }
    }

    # Mapping of environment variables to config paths
    ENV_MAPPINGS = {
        # Ollama settings
        "JOBREC_OLLAMA_HOST": ("ollama", "host"),
        "JOBREC_OLLAMA_PORT": ("ollama", "port"),
        "JOBREC_OLLAMA_MODEL": ("ollama", "model"),
        "JOBREC_OLLAMA_TIMEOUT": ("ollama", "timeout"),
        "JOBREC_OLLAMA_MAX_RETRIES": ("ollama", "max_retries"),

        # Classifier settings
        "JOBREC_CLASSIFIER_MODEL": ("classifier", "model"),
        "JOBREC_HF_TOKEN": ("classifier", "token"),
        "JOBREC_CLASSIFIER_TIMEOUT": ("classifier", "timeout"),
        "JOBREC_CLASSIFIER_WORKERS": ("classifier", "max_workers"),

        # Vector store settings
        "JOBREC_STORE_PATH": ("vector_store", "path"),
        "JOBREC_COLLECTION": ("vector_store", "collection"),
        "JOBREC_METRIC": ("vector_store", "metric"),

        # Corpus settings
        "JOBREC_POSTINGS_PATH": ("corpus", "postings_path"),

        # Matching settings
        "JOBREC_QUERY_TOP_K": ("matching", "query_top_k"),
        "JOBREC_RESUME_TOP_K": ("matching", "resume_top_k"),
        "JOBREC_OVERFETCH_FACTOR": ("matching", "overfetch_factor"),
        "JOBREC_SCORE_PRECISION": ("matching", "score_precision")
    }

    VALID_METRICS = ["cosine", "l2"]

    def __init__(self, config_dir: str = "."):
        self.config_dir = Path(config_dir)
        self.env_file = self.config_dir / ".env"
        self.config_file = self.config_dir / "jobrec.config.json"
        self.console = Console()

        # Load configuration on initialization
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from .env and config files."""
        # Start with defaults
        config = self._deep_copy_dict(self.DEFAULT_CONFIG)

        # Load .env file if it exists
        if self.env_file.exists():
            load_dotenv(str(self.env_file))

        # Load JSON config file if it exists
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    file_config = json.load(f)
                config = self._merge_configs(config, file_config)
            except (json.JSONDecodeError, FileNotFoundError) as e:
                self.console.print(f"[yellow]Warning: Could not load config file: {e}[/yellow]")

        # Override with environment variables
        config = self._apply_env_overrides(config)

        return config

    def _deep_copy_dict(self, d: Dict[str, Any]) -> Dict[str, Any]:
        """Deep copy a dictionary."""
        result = {}
        for key, value in d.items():
            if isinstance(value, dict):
                result[key] = self._deep_copy_dict(value)
            elif isinstance(value, list):
                result[key] = value.copy()
            else:
                result[key] = value
        return result

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries."""
        result = self._deep_copy_dict(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None and env_var == "JOBREC_HF_TOKEN":
                # Standard Hugging Face variable as a fallback
                value = os.getenv("HF_TOKEN")
            if value is not None:
                # Type conversion based on default value type
                default_value = self.DEFAULT_CONFIG[section][key]
                try:
                    if isinstance(default_value, bool):
                        config[section][key] = value.lower() in ('true', '1', 'yes', 'on')
                    elif isinstance(default_value, int):
                        config[section][key] = int(value)
                    elif isinstance(default_value, float):
                        config[section][key] = float(value)
                    else:
                        config[section][key] = value
                except ValueError:
                    self.console.print(f"[yellow]Warning: Invalid value for {env_var}: {value}[/yellow]")

        return config

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Get configuration value."""
        if key is None:
            return self.config.get(section, {})
        return self.config.get(section, {}).get(key)

    def set(self, section: str, key: str, value: Any) -> bool:
        """Set configuration value."""
        if section not in self.config:
            self.config[section] = {}

        # Validate against default structure
        if section in self.DEFAULT_CONFIG:
            if key not in self.DEFAULT_CONFIG[section]:
                self.console.print(f"[yellow]Warning: Unknown config key '{section}.{key}'[/yellow]")

        self.config[section][key] = value
        return self.save_config()

    def save_config(self) -> bool:
        """Save current configuration to JSON file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            self.console.print(f"[red]Error saving config: {e}[/red]")
            return False

    def set_env_var(self, key: str, value: str) -> bool:
        """Set environment variable in .env file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            set_key(str(self.env_file), key, value)
            # load_dotenv never overrides, so push the new value explicitly
            os.environ[key] = value
            self.config = self._load_config()
            return True
        except OSError as e:
            self.console.print(f"[red]Error setting environment variable: {e}[/red]")
            return False

    def unset_env_var(self, key: str) -> bool:
        """Remove environment variable from .env file."""
        try:
            if self.env_file.exists():
                unset_key(str(self.env_file), key)
            os.environ.pop(key, None)
            self.config = self._load_config()
            return True
        except OSError as e:
            self.console.print(f"[red]Error removing environment variable: {e}[/red]")
            return False

    def reset_to_defaults(self) -> bool:
        """Reset configuration to default values."""
        self.config = self._deep_copy_dict(self.DEFAULT_CONFIG)
        return self.save_config()

    def validate_config(self) -> List[str]:
        """Validate current configuration and return list of issues."""
        issues = []

        # Validate vector store path
        store_path = self.get("vector_store", "path")
        if store_path:
            store_dir = Path(store_path).parent
            if not store_dir.exists():
                try:
                    store_dir.mkdir(parents=True, exist_ok=True)
                except OSError:
                    issues.append(f"Vector store directory not accessible: {store_dir}")

        metric = self.get("vector_store", "metric")
        if metric not in self.VALID_METRICS:
            issues.append(f"Invalid distance metric: {metric}")

        # Validate ollama settings
        ollama_port = self.get("ollama", "port")
        if not isinstance(ollama_port, int) or ollama_port < 1 or ollama_port > 65535:
            issues.append(f"Invalid Ollama port: {ollama_port}")

        ollama_timeout = self.get("ollama", "timeout")
        if not isinstance(ollama_timeout, (int, float)) or ollama_timeout <= 0:
            issues.append(f"Invalid Ollama timeout: {ollama_timeout}")

        max_workers = self.get("classifier", "max_workers")
        if not isinstance(max_workers, int) or max_workers < 1:
            issues.append(f"Invalid classifier worker count: {max_workers}")

        # Validate matching settings
        for key in ("query_top_k", "resume_top_k", "overfetch_factor"):
            value = self.get("matching", key)
            if not isinstance(value, int) or value < 1:
                issues.append(f"Invalid matching.{key}: {value}")

        postings_path = self.get("corpus", "postings_path")
        if postings_path and not Path(postings_path).exists():
            issues.append(f"Postings file not found: {postings_path}")

        return issues

    def display_config(self) -> None:
        """Display current configuration in a formatted table."""
        self.console.print("[bold cyan]JobRec Configuration[/bold cyan]")
        self.console.print()

        for section_name, section_data in self.config.items():
            table = Table(title=f"{section_name.replace('_', ' ').title()} Settings")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            table.add_column("Type", style="dim")

            for key, value in section_data.items():
                value_str = str(value)
                if key == "token" and value:
                    value_str = "****"
                elif isinstance(value, bool):
                    value_str = "✓" if value else "✗"
                elif isinstance(value, str) and len(value) > 50:
                    value_str = value[:47] + "..."

                table.add_row(
                    key.replace("_", " ").title(),
                    value_str,
                    type(value).__name__
                )

            self.console.print(table)
            self.console.print()

    def get_env_template(self) -> str:
        """Generate a template .env file with all available settings."""
        template_lines = [
            "# JobRec Configuration",
            "# Copy this file to .env and modify as needed",
        ]

        current_section = None
        for env_var, (section, key) in self.ENV_MAPPINGS.items():
            if section != current_section:
                template_lines.append("")
                template_lines.append(f"# {section.replace('_', ' ').title()} Settings")
                current_section = section
            default_value = self.DEFAULT_CONFIG[section][key]
            if isinstance(default_value, bool):
                default_value = str(default_value).lower()
            template_lines.append(f"# {env_var}={default_value}")

        template_lines.append("")
        return "\n".join(template_lines)

    def export_env_template(self, output_path: Optional[str] = None) -> bool:
        """Export .env template to file."""
        try:
            template_path = output_path or ".env.template"
            with open(template_path, 'w') as f:
                f.write(self.get_env_template())
            self.console.print(f"[green]✓ .env template exported to: {template_path}[/green]")
            return True
        except OSError as e:
            self.console.print(f"[red]Error exporting template: {e}[/red]")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection information for services."""
        store_path = self.get("vector_store", "path")
        return {
            "vector_store": {
                "path": store_path,
                "collection": self.get("vector_store", "collection"),
                "metric": self.get("vector_store", "metric"),
                "exists": Path(store_path).exists() if store_path else False
            },
            "ollama": {
                "host": self.get("ollama", "host"),
                "port": self.get("ollama", "port"),
                "url": f"http://{self.get('ollama', 'host')}:{self.get('ollama', 'port')}",
                "model": self.get("ollama", "model")
            },
            "classifier": {
                "model": self.get("classifier", "model"),
                "authenticated": bool(self.get("classifier", "token"))
            }
        }


def get_config_manager() -> ConfigManager:
    """Get global configuration manager instance."""
    if not hasattr(get_config_manager, '_instance'):
        get_config_manager._instance = ConfigManager()
    return get_config_manager._instance


def reload_config():
    """Reload configuration from files."""
    if hasattr(get_config_manager, '_instance'):
        get_config_manager._instance = ConfigManager()
