"""
配置加载器 - 支持YAML与pyproject.toml格式配置文件
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

from .errors import ConfigError

try:
    import yaml
except ImportError:
    yaml = None

try:  # py3.11+
    import tomllib as tomli
except ImportError:
    try:
        import tomli
    except ImportError:
        tomli = None

logger = logging.getLogger(__name__)


@dataclass
class ReftrimConfig:
    """reftrim 运行配置"""
    root: str = "."
    include: List[str] = field(default_factory=lambda: ["*.*proj"])
    exclude: List[str] = field(default_factory=lambda: [
        "**/bin/**", "**/obj/**", "**/.git/**", "**/node_modules/**",
    ])
    configuration: str = "Debug"
    compile_if_needed: bool = False
    restore_if_needed: bool = False
    # 输出类型需要携带传递依赖的程序集（如 Exe）
    transitive_output_types: List[str] = field(default_factory=lambda: ["Exe"])
    dotnet: str = "dotnet"
    build_timeout: Optional[float] = None
    # MSBuild 二进制日志目录（-bl:）
    binlog: Optional[str] = None
    # 可选输出：JSON 报告与 Graphviz 图
    json_report: Optional[str] = None
    graph: Optional[str] = None
    graph_format: str = "svg"
    fail_on_unused: bool = False


CONFIG_CANDIDATES = [
    'reftrim.yaml',
    'reftrim.yml',
    '.reftrim.yaml',
    '.reftrim.yml',
    'pyproject.toml',  # 检查 [tool.reftrim]
]


def load_config(config_path: Optional[Path] = None, search_dir: Optional[Path] = None) -> ReftrimConfig:
    """
    加载配置文件

    Args:
        config_path: 指定配置文件路径，如果为None则自动查找
        search_dir: 自动查找的目录（默认当前目录）

    Returns:
        ReftrimConfig: 加载的配置
    """
    if config_path:
        return _load_config_file(Path(config_path))

    found_config = find_config_file(search_dir)
    if found_config:
        logger.info("Using config file: %s", found_config)
        return _load_config_file(found_config)

    logger.debug("No config file found, using defaults")
    return ReftrimConfig()


def find_config_file(search_dir: Optional[Path] = None) -> Optional[Path]:
    """按优先级查找配置文件"""
    base = Path(search_dir) if search_dir else Path('.')
    for name in CONFIG_CANDIDATES:
        candidate = base / name
        if candidate.exists():
            # 对于pyproject.toml，检查是否有[tool.reftrim]配置
            if candidate.name == 'pyproject.toml':
                if _has_reftrim_config(candidate):
                    return candidate
                continue
            return candidate
    return None


def _load_config_file(config_path: Path) -> ReftrimConfig:
    """加载指定的配置文件"""
    if not config_path.exists():
        raise ConfigError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        return _load_yaml_config(config_path)
    elif suffix == '.toml':
        return _load_toml_config(config_path)
    else:
        raise ConfigError(f"Unsupported config file format: {suffix}")


def _load_yaml_config(config_path: Path) -> ReftrimConfig:
    if yaml is None:
        raise ImportError("PyYAML is required to read YAML config files: pip install pyyaml")

    try:
        with config_path.open('r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not data:
        return ReftrimConfig()
    return _parse_config_data(data, config_path)


def _load_toml_config(config_path: Path) -> ReftrimConfig:
    if tomli is None:
        raise ImportError("tomli is required to read TOML config files: pip install tomli")

    try:
        with config_path.open('rb') as f:
            data = tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    # pyproject.toml 格式
    if 'tool' in data and 'reftrim' in data['tool']:
        config_data = data['tool']['reftrim']
    else:
        config_data = data
    return _parse_config_data(config_data, config_path)


def _has_reftrim_config(pyproject_path: Path) -> bool:
    if tomli is None:
        return False
    try:
        with pyproject_path.open('rb') as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError):
        return False
    return 'tool' in data and 'reftrim' in data['tool']


def _as_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value]
    raise ConfigError(f"'{key}' must be a string or a list of strings")


def _parse_config_data(data: Dict[str, Any], source: Optional[Path] = None) -> ReftrimConfig:
    """解析配置数据"""
    if not isinstance(data, dict):
        raise ConfigError(f"Config in {source} must be a mapping")
    config = ReftrimConfig()

    for key in ('root', 'configuration', 'dotnet', 'binlog', 'json_report', 'graph', 'graph_format'):
        if key in data and data[key] is not None:
            setattr(config, key, str(data[key]))
    for key in ('include', 'exclude', 'transitive_output_types'):
        if key in data:
            setattr(config, key, _as_list(data[key], key))
    for key in ('compile_if_needed', 'restore_if_needed', 'fail_on_unused'):
        if key in data:
            setattr(config, key, bool(data[key]))
    if data.get('build_timeout') is not None:
        try:
            config.build_timeout = float(data['build_timeout'])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"'build_timeout' must be a number of seconds: {data['build_timeout']!r}") from e

    unknown = set(data) - set(ReftrimConfig.__dataclass_fields__) - {'version'}
    if unknown:
        logger.warning("Ignoring unknown config keys in %s: %s", source, ", ".join(sorted(unknown)))

    # root 相对于配置文件所在目录
    if source is not None and not Path(config.root).is_absolute():
        config.root = str((source.parent / config.root).resolve())
    return config


def create_example_config() -> str:
    """创建示例配置文件内容"""
    return """# reftrim 配置文件
version: "1.0"

# 扫描根目录（相对于本文件）
root: "."

# 项目文件匹配/排除模式
include:
  - "*.*proj"
exclude:
  - "**/bin/**"
  - "**/obj/**"
  - "**/.git/**"
  - "**/node_modules/**"

# 用于定位 obj/<Configuration>/<TFM>/ 下的中间程序集
configuration: "Debug"

# 程序集/资产文件缺失时是否按需构建
compile_if_needed: false
restore_if_needed: false
dotnet: "dotnet"
# build_timeout: 600
# binlog: "reftrim_results/binlogs"

# 这些输出类型会把依赖项的程序集一并带到输出目录
transitive_output_types:
  - "Exe"

# 可选输出
# json_report: "reftrim_results/report.json"
# graph: "reftrim_results/units"
graph_format: "svg"

# 存在可移除的依赖时返回非零退出码
fail_on_unused: false
"""


def save_example_config(output_path: Optional[Path] = None, force: bool = False) -> Path:
    """保存示例配置文件"""
    if output_path is None:
        output_path = Path("reftrim.yaml")
    if output_path.exists() and not force:
        raise ConfigError(f"{output_path} already exists (use --force to overwrite)")
    output_path.write_text(create_example_config(), encoding='utf-8')
    return output_path
