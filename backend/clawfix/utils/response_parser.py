"""
XML Tag Parser
Parses Claude's XML-tagged analysis responses into Python values
"""

from typing import Dict, Any, List
import re


class PlainTextParser:
    """Parse XML-tagged responses from Claude"""

    @staticmethod
    def parse_xml_tags(response: str, tag_name: str) -> List[Dict[str, str]]:
        """
        Parse XML-style tags from response

        Examples:
        <summary>...</summary>
        <issue severity="high">...</issue>
        <fixes>...</fixes>

        Args:
            response: Response text from Claude
            tag_name: Tag name to extract (e.g., 'summary', 'issue')

        Returns:
            List of dicts with tag content and attributes
        """
        results = []

        # Matches: <tag attr="value">content</tag>
        pattern = rf'<{tag_name}(\s[^>]*)?>(.*?)</{tag_name}>'
        matches = re.finditer(pattern, response, re.DOTALL)

        for match in matches:
            attrs_str = (match.group(1) or '').strip()
            content = match.group(2).strip()

            attrs = {}
            if attrs_str:
                attr_pattern = r'(\w+)="([^"]*)"'
                for attr_match in re.finditer(attr_pattern, attrs_str):
                    attrs[attr_match.group(1)] = attr_match.group(2)

            results.append({
                'content': content,
                **attrs
            })

        return results

    @staticmethod
    def first_tag(response: str, tag_name: str) -> str:
        """Content of the first <tag_name> element, or ''"""
        tags = PlainTextParser.parse_xml_tags(response, tag_name)
        return tags[0]['content'] if tags else ''

    @staticmethod
    def strip_code_fences(text: str) -> str:
        """
        Unwrap ```bash ... ``` blocks.

        Returns the joined bodies of all fenced blocks, or the text itself
        when it contains no fences.
        """
        blocks = re.findall(r'```[\w-]*\n(.*?)```', text, re.DOTALL)
        if not blocks:
            return text.strip()
        return "\n\n".join(block.strip() for block in blocks if block.strip())

    @staticmethod
    def parse_analysis_response(response: str) -> Dict[str, Any]:
        """
        Parse a complete diagnostic analysis response

        Extracts:
        - <summary>...</summary>
        - <issues><issue>...</issue></issues>
        - <insights>...</insights>
        - <fixes>...</fixes>

        Args:
            response: Full response from Claude

        Returns:
            Dict with parsed sections; missing sections are empty
        """
        issues_block = PlainTextParser.first_tag(response, 'issues')
        issues = [
            tag['content']
            for tag in PlainTextParser.parse_xml_tags(issues_block, 'issue')
            if tag['content']
        ]

        fixes = PlainTextParser.first_tag(response, 'fixes')

        return {
            'summary': PlainTextParser.first_tag(response, 'summary'),
            'issues': issues,
            'insights': PlainTextParser.first_tag(response, 'insights'),
            'fixes': PlainTextParser.strip_code_fences(fixes) if fixes else '',
        }
