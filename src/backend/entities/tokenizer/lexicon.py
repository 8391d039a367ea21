"""Static word lists used by the tokenizer and keyword extractors.

Everything here is immutable and passed into the components that use
it; nothing reads these sets implicitly except as a constructor default.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ── Chinese segmentation dictionary ──────────────────────────────────────

DEFAULT_CHINESE_DICTIONARY: frozenset[str] = frozenset({
    # General / technology
    "人工智能", "机器学习", "深度学习", "数据", "数据库", "数据分析", "数据仓库",
    "系统", "技术", "领域", "应用", "应用程序", "服务", "服务器", "接口", "连接",
    "连接池", "优化", "性能", "查询", "语句", "索引", "字段", "表格", "记录",
    "用户", "用户名", "密码", "权限", "角色", "日志", "配置", "版本", "文件",
    "文章", "作者", "评论", "标签", "分类", "内容", "标题", "发布", "创建", "更新",
    "删除", "修改", "时间", "日期", "状态", "类型", "名称", "描述", "编号",
    # Business
    "订单", "订单号", "金额", "销售", "销售额", "客户", "产品", "商品", "价格",
    "库存", "入库", "出库", "供应商", "采购", "发票", "支付", "退款", "收入",
    "利润", "成本", "预算", "合同", "门店", "渠道", "线索", "成交", "交付",
    "部门", "员工", "人数", "工资", "薪资", "职位", "经理", "公司",
    "地址", "城市", "省份", "国家", "地区", "电话", "邮箱",
    "数量", "总数", "总额", "平均", "最大", "最小", "最高", "最低", "排名",
    "统计", "汇总", "趋势", "分布", "占比", "同比", "环比",
    "月度", "季度", "年度", "每月", "每天", "每年", "今年", "去年", "本月", "上月",
    # Phrasing
    "如何", "使用", "实现", "显示", "所有", "每个", "哪些", "多少", "大于", "小于",
    "未支付", "已支付", "购买", "前十",
    # Classic segmentation examples
    "南京", "南京市", "市长", "长江", "大桥", "长江大桥",
})

# ── Stop words ───────────────────────────────────────────────────────────

ENGLISH_STOP_WORDS: frozenset[str] = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "am", "an", "and",
    "any", "are", "as", "at", "be", "because", "been", "before", "being", "below",
    "between", "both", "but", "by", "can", "could", "did", "do", "does", "doing",
    "down", "during", "each", "few", "for", "from", "further", "had", "has", "have",
    "having", "he", "her", "here", "hers", "him", "his", "how", "i", "if", "in",
    "into", "is", "it", "its", "itself", "just", "me", "more", "most", "my", "no",
    "nor", "not", "now", "of", "off", "on", "once", "only", "or", "other", "our",
    "ours", "out", "over", "own", "same", "she", "should", "so", "some", "such",
    "than", "that", "the", "their", "theirs", "them", "then", "there", "these",
    "they", "this", "those", "through", "to", "too", "under", "until", "up", "very",
    "was", "we", "were", "what", "when", "where", "which", "while", "who", "whom",
    "why", "will", "with", "would", "you", "your", "yours",
})

CHINESE_STOP_WORDS: frozenset[str] = frozenset({
    "的", "了", "在", "是", "我", "有", "和", "与", "及", "或", "就", "不", "都",
    "一", "一个", "也", "很", "到", "要", "会", "着", "这", "那", "个", "中",
    "对", "按", "以", "于", "为", "把", "被", "从", "给", "让", "们", "他", "她",
    "它", "请", "问", "吗", "呢", "吧", "啊", "什么", "怎么", "如何", "哪些", "所有",
})

# SQL keywords and request filler that never identify a table.
SQL_STOP_WORDS: frozenset[str] = frozenset({
    "select", "from", "where", "and", "or", "not", "in", "is", "null",
    "order", "by", "group", "having", "limit", "offset", "join", "on",
    "left", "right", "inner", "outer", "cross", "union", "all", "distinct",
    "as", "asc", "desc", "between", "like", "exists", "case", "when", "then",
    "else", "end", "count", "sum", "avg", "min", "max", "the", "a", "an",
    "show", "me", "get", "find", "list", "display", "give", "what", "which",
    "how", "many", "much", "each", "every", "any", "some", "most",
    "top", "first", "last", "recent", "latest", "oldest", "highest", "lowest",
    "total", "average", "number", "amount", "value", "data", "information",
})


@dataclass(frozen=True)
class Lexicon:
    """Bundle of the word lists a tokenizer pipeline needs.

    Args:
        dictionary: Words recognised by the Chinese segmenter.
        stop_words: Tokens never returned as keywords.
    """

    dictionary: frozenset[str] = DEFAULT_CHINESE_DICTIONARY
    stop_words: frozenset[str] = field(
        default_factory=lambda: ENGLISH_STOP_WORDS | CHINESE_STOP_WORDS
    )

    def with_stop_words(self, extra: frozenset[str]) -> Lexicon:
        """Return a copy whose stop words also include ``extra``."""
        return Lexicon(dictionary=self.dictionary, stop_words=self.stop_words | extra)
